# leave_mgmt/audit/router.py
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from leave_mgmt.audit.models import AuditLog
from leave_mgmt.auth.dependencies import is_admin
from leave_mgmt.database import get_db
from leave_mgmt.errors import not_found
from leave_mgmt.users.models import User
from leave_mgmt.utils.pdf_generator import build_audit_report

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audit", tags=["audit"])

SORTABLE = {
    "created_at": AuditLog.created_at,
    "action": AuditLog.action,
    "user_id": AuditLog.user_id,
    "category": AuditLog.category,
    "severity": AuditLog.severity,
}


def _filtered(db: Session, user_id=None, action=None, category=None, severity=None,
              search=None, start_date=None, end_date=None):
    q = db.query(AuditLog)
    if user_id:
        q = q.filter(AuditLog.user_id == user_id)
    if action:
        q = q.filter(AuditLog.action == action)
    if category:
        q = q.filter(AuditLog.category == category)
    if severity:
        q = q.filter(AuditLog.severity == severity)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(AuditLog.action.ilike(like), AuditLog.entity_type.ilike(like),
                         AuditLog.ip_address.ilike(like)))
    if start_date:
        q = q.filter(AuditLog.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        # end_date is inclusive
        q = q.filter(AuditLog.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
    return q


@router.get("/logs")
def list_logs(
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    category: Optional[str] = None,
    severity: Optional[str] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort_by: str = Query("created_at", pattern="^(" + "|".join(SORTABLE) + ")$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(is_admin),
):
    q = _filtered(db, user_id, action, category, severity, search, start_date, end_date)
    total = q.count()

    column = SORTABLE[sort_by]
    order = column.asc() if sort_order == "asc" else column.desc()
    rows = q.order_by(order, AuditLog.id.desc()).offset(offset).limit(limit).all()
    return {"data": [r.to_dict() for r in rows], "total": total}


@router.get("/logs/{log_id}")
def get_log(log_id: int, db: Session = Depends(get_db), admin: User = Depends(is_admin)):
    row = db.query(AuditLog).filter(AuditLog.id == log_id).first()
    if not row:
        raise not_found("Audit Log Not Found", "Audit log entry not found")
    return {"log": row.to_dict()}


@router.get("/export")
def export_logs(
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    category: Optional[str] = None,
    severity: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(1000, ge=1, le=5000),
    db: Session = Depends(get_db),
    admin: User = Depends(is_admin),
):
    q = _filtered(db, user_id, action, category, severity, None, start_date, end_date)
    rows = [r.to_dict() for r in q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)]

    subtitle = None
    if start_date or end_date:
        subtitle = f"Period: {start_date or '...'} to {end_date or '...'}"
    pdf = build_audit_report(rows, subtitle=subtitle)
    log.info("Audit export of %d row(s) by admin %s", len(rows), admin.id)

    filename = f"audit_logs_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
