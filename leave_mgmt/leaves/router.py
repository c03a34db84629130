# leave_mgmt/leaves/router.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from leave_mgmt.audit.logger import AuditLogger
from leave_mgmt.auth.dependencies import get_current_user, is_manager_or_hr
from leave_mgmt.database import get_db
from leave_mgmt.errors import forbidden, not_found
from leave_mgmt.leaves import service
from leave_mgmt.leaves.models import Leave, PENDING, STATUSES
from leave_mgmt.leaves.schemas import LeaveSubmission, LeaveDecision
from leave_mgmt.leaves.types import ensure_default_leave_types, serialize_leave_type
from leave_mgmt.leaves.uploads import validate_attachments
from leave_mgmt.notifications.service import (
    create_leave_submission_notifications,
    send_leave_approval_notification,
)
from leave_mgmt.users.models import User
from leave_mgmt.utils.email_service import send_leave_decision_email

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leaves", tags=["leaves"])


def _get_leave(db: Session, leave_id: int) -> Leave:
    leave = db.query(Leave).filter(Leave.id == leave_id).one_or_none()
    if not leave:
        raise not_found("Leave Not Found", "Leave application not found")
    return leave


def _status_filter(status: Optional[str]) -> Optional[str]:
    if status and status not in STATUSES:
        raise RequestValidationError([{
            "loc": ("query", "status"),
            "msg": f"Status must be one of {', '.join(STATUSES)}",
            "type": "value_error",
        }])
    return status


# -----------------------
# Leave types
# -----------------------
@router.get("/types")
def list_leave_types(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"leave_types": [serialize_leave_type(lt) for lt in ensure_default_leave_types(db)]}


# -----------------------
# Submit
# -----------------------
@router.post("", status_code=201)
def submit_leave(
    request: Request,
    leave_type_id: Optional[str] = Form(None),
    start_date: Optional[str] = Form(None),
    end_date: Optional[str] = Form(None),
    reason: Optional[str] = Form(None),
    is_half_day: Optional[str] = Form(None),
    half_day_type: Optional[str] = Form(None),
    emergency_contact: Optional[str] = Form(None),
    handover_notes: Optional[str] = Form(None),
    attachment: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    raw = {
        "leave_type_id": leave_type_id,
        "start_date": start_date,
        "end_date": end_date,
        "reason": reason,
        "is_half_day": is_half_day,
        "half_day_type": half_day_type,
        "emergency_contact": emergency_contact,
        "handover_notes": handover_notes,
    }
    # browsers post empty strings for untouched optional inputs
    raw = {k: v for k, v in raw.items() if v not in (None, "")}
    try:
        data = LeaveSubmission(**raw)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())

    files = validate_attachments(attachment)
    log.info("Leave submission by user %s: type=%s %s..%s half_day=%s files=%d",
             user.id, data.leave_type_id, data.start_date, data.end_date, data.is_half_day, len(files))

    leave = service.submit_leave(db, user, data, attachment=files[0] if files else None)

    AuditLogger.log_data_modification(
        db, user.id, "leave", leave.id, "CREATE",
        new_values={
            "leave_type_id": leave.leave_type_id,
            "start_date": leave.start_date,
            "end_date": leave.end_date,
            "number_of_days": leave.number_of_days,
            "status": leave.status,
        },
        request=request,
    )

    try:
        create_leave_submission_notifications(db, leave, user)
    except Exception:
        log.exception("Failed to create submission notifications for leave id=%s", leave.id)
        db.rollback()

    return {
        "message": "Leave application submitted successfully",
        "leave": service.serialize_leave(leave),
    }


# -----------------------
# Reads
# -----------------------
@router.get("")
def list_my_leaves(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    items = (
        db.query(Leave)
        .filter(Leave.user_id == user.id)
        .order_by(Leave.created_at.desc(), Leave.id.desc())
        .all()
    )
    return {"leaves": [service.serialize_leave(l, include_people=False) for l in items]}


@router.get("/my-leaves")
def my_leaves(
    status: Optional[str] = None,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(Leave).filter(Leave.user_id == user.id)
    if _status_filter(status):
        q = q.filter(Leave.status == status)
    if year:
        q = q.filter(Leave.start_date >= date(year, 1, 1), Leave.start_date <= date(year, 12, 31))

    items, pagination = service.paginate(q.order_by(Leave.created_at.desc(), Leave.id.desc()), page, limit)
    return {
        "leaves": [service.serialize_leave(l, include_people=False) for l in items],
        "pagination": pagination,
    }


@router.get("/pending/approvals")
def pending_approvals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(is_manager_or_hr),
):
    q = db.query(Leave).filter(Leave.status == PENDING)
    if user.role == "manager":
        q = q.filter(Leave.user_id.in_(service.team_member_ids(db, user.id)))

    items, pagination = service.paginate(q.order_by(Leave.created_at.asc(), Leave.id.asc()), page, limit)
    return {"leaves": [service.serialize_leave(l) for l in items], "pagination": pagination}


@router.get("/all")
def all_leaves(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    department: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(is_manager_or_hr),
):
    q = db.query(Leave).join(User, Leave.user_id == User.id)
    if _status_filter(status):
        q = q.filter(Leave.status == status)
    if user_id:
        q = q.filter(Leave.user_id == user_id)
    if user.role == "manager":
        q = q.filter(Leave.user_id.in_(service.team_member_ids(db, user.id)))
    if department:
        q = q.filter(User.department == department)

    items, pagination = service.paginate(q.order_by(Leave.created_at.desc(), Leave.id.desc()), page, limit)
    return {"leaves": [service.serialize_leave(l) for l in items], "pagination": pagination}


@router.get("/{leave_id}")
def get_leave(leave_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    leave = _get_leave(db, leave_id)
    if not service.can_view(user, leave):
        raise forbidden("You do not have permission to view this leave application")
    return {"leave": service.serialize_leave(leave)}


# -----------------------
# State changes
# -----------------------
@router.put("/{leave_id}/cancel")
def cancel_leave(leave_id: int, request: Request, db: Session = Depends(get_db),
                 user: User = Depends(get_current_user)):
    leave = _get_leave(db, leave_id)
    leave = service.cancel_leave(db, leave, user)
    log.info("Leave %s cancelled by user %s", leave_id, user.id)

    AuditLogger.log_data_modification(
        db, user.id, "leave", leave.id, "UPDATE",
        old_values={"status": PENDING}, new_values={"status": leave.status},
        request=request,
    )
    return {"message": "Leave application cancelled successfully", "leave": service.serialize_leave(leave)}


@router.put("/{leave_id}/approve")
def approve_leave(leave_id: int, payload: LeaveDecision, request: Request,
                  db: Session = Depends(get_db), user: User = Depends(is_manager_or_hr)):
    leave = _get_leave(db, leave_id)
    leave = service.decide_leave(db, leave, user, payload.action,
                                 rejection_reason=payload.rejection_reason,
                                 manager_notes=payload.manager_notes)

    AuditLogger.log_data_modification(
        db, user.id, "leave", leave.id, "UPDATE",
        old_values={"status": PENDING},
        new_values={
            "status": leave.status,
            "approved_by": leave.approved_by,
            "rejection_reason": leave.rejection_reason,
            "manager_notes": leave.manager_notes,
        },
        request=request,
    )

    try:
        send_leave_approval_notification(db, leave, user, payload.action)
    except Exception:
        log.exception("Failed to create decision notification for leave id=%s", leave.id)
        db.rollback()

    ok = send_leave_decision_email(leave, user)
    log.info("Decision email for leave id=%s: %s", leave.id, "sent" if ok else "skipped")

    verb = "approved" if payload.action == "approve" else "rejected"
    return {"message": f"Leave application {verb} successfully", "leave": service.serialize_leave(leave)}
