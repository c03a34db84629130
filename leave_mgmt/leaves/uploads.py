# leave_mgmt/leaves/uploads.py
import logging
import os
import random
import re
import time
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from leave_mgmt import config
from leave_mgmt.errors import bad_request

log = logging.getLogger(__name__)

ALLOWED_TYPES = re.compile(r"jpeg|jpg|png|gif|pdf|doc|docx")
CHUNK_SIZE = 64 * 1024


def _is_allowed(upload: UploadFile) -> bool:
    ext = os.path.splitext(upload.filename or "")[1].lower()
    mimetype = (upload.content_type or "").lower()
    # the doc/docx MIME types spell "msword" / "wordprocessingml", so match either word
    mime_ok = bool(ALLOWED_TYPES.search(mimetype)) or "msword" in mimetype or "wordprocessingml" in mimetype
    return bool(ext) and bool(ALLOWED_TYPES.fullmatch(ext.lstrip("."))) and mime_ok


def _target_name(original: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"leave-{suffix}{os.path.splitext(original)[1].lower()}"


def validate_attachments(files: Optional[List[UploadFile]]) -> List[UploadFile]:
    files = [f for f in (files or []) if f is not None and f.filename]
    if len(files) > config.MAX_ATTACHMENTS:
        raise bad_request("Validation Error", f"At most {config.MAX_ATTACHMENTS} attachments are allowed")
    for f in files:
        if not _is_allowed(f):
            raise bad_request("Invalid File", "Only image, PDF, and document files are allowed")
    return files


def save_attachment(upload: UploadFile) -> str:
    """
    Stream the upload into UPLOAD_PATH. Returns the public path (/uploads/<name>).
    Oversized files are removed and rejected with 400.
    """
    target_dir = Path(config.UPLOAD_PATH)
    target_dir.mkdir(parents=True, exist_ok=True)
    name = _target_name(upload.filename)
    target = target_dir / name

    written = 0
    with open(target, "wb") as fh:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > config.MAX_FILE_SIZE:
                break
            fh.write(chunk)

    if written > config.MAX_FILE_SIZE:
        target.unlink(missing_ok=True)
        raise bad_request("File Too Large", f"Attachments must be at most {config.MAX_FILE_SIZE} bytes")

    log.info("Stored attachment %s (%d bytes) as %s", upload.filename, written, target)
    return f"/uploads/{name}"


def remove_attachment(public_path: Optional[str]):
    if not public_path:
        return
    try:
        (Path(config.UPLOAD_PATH) / os.path.basename(public_path)).unlink(missing_ok=True)
    except OSError:
        log.warning("Could not remove attachment %s", public_path, exc_info=True)
