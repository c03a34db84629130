# leave_mgmt/audit/logger.py
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from leave_mgmt.audit.models import AuditLog

log = logging.getLogger(__name__)


def _jsonable(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if values is None:
        return None
    out = {}
    for k, v in values.items():
        if isinstance(v, (date, datetime)):
            v = v.isoformat()
        out[k] = v
    return out


def _client_info(request: Optional[Request]):
    if request is None:
        return None, None
    ip = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    return ip, (request.headers.get("user-agent") or "")[:255] or None


class AuditLogger:
    """
    Writes audit rows in their own commit. A failed audit write is logged and
    rolled back; it never fails the request that triggered it.
    """

    @staticmethod
    def _write(db: Session, **fields) -> Optional[AuditLog]:
        try:
            row = AuditLog(**fields)
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        except Exception:
            log.exception("Failed to write audit log (action=%s entity=%s:%s)",
                          fields.get("action"), fields.get("entity_type"), fields.get("entity_id"))
            db.rollback()
            return None

    @staticmethod
    def log_data_modification(db: Session, user_id: Optional[int], entity_type: str, entity_id: Optional[int],
                              action: str, old_values: Optional[Dict[str, Any]] = None,
                              new_values: Optional[Dict[str, Any]] = None,
                              request: Optional[Request] = None,
                              severity: str = "info") -> Optional[AuditLog]:
        ip, agent = _client_info(request)
        return AuditLogger._write(
            db,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=_jsonable(old_values),
            new_values=_jsonable(new_values),
            category="data_modification",
            severity=severity,
            ip_address=ip,
            user_agent=agent,
        )

    @staticmethod
    def log_authentication(db: Session, user_id: Optional[int], action: str, success: bool,
                           request: Optional[Request] = None,
                           details: Optional[Dict[str, Any]] = None) -> Optional[AuditLog]:
        ip, agent = _client_info(request)
        return AuditLogger._write(
            db,
            user_id=user_id,
            action=action,
            entity_type="user",
            entity_id=user_id,
            new_values=_jsonable(dict(details or {}, success=success)),
            category="authentication",
            severity="info" if success else "warning",
            ip_address=ip,
            user_agent=agent,
        )
