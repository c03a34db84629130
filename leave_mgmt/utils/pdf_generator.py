# leave_mgmt/utils/pdf_generator.py
import io
import logging
from datetime import datetime
from typing import Iterable, Optional

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib import colors

log = logging.getLogger(__name__)

COLUMNS = [
    # (header, key, x offset)
    ("ID", "id", 40),
    ("When (UTC)", "created_at", 80),
    ("User", "user_id", 210),
    ("Action", "action", 250),
    ("Entity", "entity", 330),
    ("Category", "category", 440),
    ("Severity", "severity", 560),
    ("IP", "ip_address", 630),
]
ROW_HEIGHT = 16


def _truncate(s, max_len: int = 30) -> str:
    s = "" if s is None else str(s)
    return s if len(s) <= max_len else s[: max_len - 1] + "~"


def _cell(row: dict, key: str) -> str:
    if key == "entity":
        if not row.get("entity_type"):
            return ""
        return f"{row.get('entity_type')}:{row.get('entity_id') or '-'}"
    if key == "created_at":
        return (row.get("created_at") or "")[:19].replace("T", " ")
    return _truncate(row.get(key), 22)


def _header(c, width, height, title: str, subtitle: Optional[str]):
    c.setFont("Helvetica-Bold", 16)
    c.drawString(40, height - 40, title)
    c.setFont("Helvetica", 10)
    c.drawString(40, height - 56, f"Generated On: {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC")
    if subtitle:
        c.drawString(40, height - 70, subtitle)

    c.setStrokeColor(colors.black)
    c.line(30, height - 78, width - 30, height - 78)

    c.setFont("Helvetica-Bold", 10)
    for label, _, x in COLUMNS:
        c.drawString(x, height - 94, label)
    c.setFont("Helvetica", 9)
    return height - 94 - ROW_HEIGHT


def build_audit_report(rows: Iterable[dict], title: str = "Audit Log Report",
                       subtitle: Optional[str] = None) -> bytes:
    """
    Render audit rows (AuditLog.to_dict() output) as a landscape A4 table.
    Returns the PDF bytes; raises RuntimeError when ReportLab fails.
    """
    buffer = io.BytesIO()
    count = 0
    try:
        c = canvas.Canvas(buffer, pagesize=landscape(A4))
        width, height = landscape(A4)
        y = _header(c, width, height, title, subtitle)

        for row in rows:
            if y < 50:
                c.showPage()
                y = _header(c, width, height, title, subtitle)
            for _, key, x in COLUMNS:
                c.drawString(x, y, _cell(row, key))
            y -= ROW_HEIGHT
            count += 1

        if count == 0:
            c.drawString(40, y, "No audit entries match the selected filters.")

        # Footer
        c.line(30, 35, width - 30, 35)
        c.drawString(40, 22, f"{count} entr{'y' if count == 1 else 'ies'}")

        c.showPage()
        c.save()
    except Exception as e:
        log.exception("Error while building audit PDF")
        raise RuntimeError(f"ReportLab error while generating PDF: {e}") from e

    log.info("Built audit PDF with %d row(s)", count)
    return buffer.getvalue()
