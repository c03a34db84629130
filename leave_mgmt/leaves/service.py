# leave_mgmt/leaves/service.py
"""
Business rules for leave requests: day arithmetic, balance/overlap/duplicate
checks on submission, and the pending -> approved/rejected/cancelled
transitions.

Functions raise ``HTTPException`` built by ``leave_mgmt.errors`` so routes can
let them propagate unchanged.
"""
import logging
import math
from datetime import date, datetime
from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, Query

from leave_mgmt import config
from leave_mgmt.balances.financial_year import get_financial_year, get_or_init_balance, apply_leave_usage
from leave_mgmt.errors import bad_request, conflict, forbidden
from leave_mgmt.leaves.models import (
    Leave, LeaveType, PENDING, APPROVED, REJECTED, CANCELLED, ALLOWED_TRANSITIONS,
)
from leave_mgmt.leaves.schemas import LeaveSubmission
from leave_mgmt.leaves.uploads import save_attachment, remove_attachment
from leave_mgmt.leaves.types import serialize_leave_type
from leave_mgmt.users.models import User, APPROVER_ROLES
from leave_mgmt.users.schemas import serialize_user

log = logging.getLogger(__name__)


# -----------------------
# Arithmetic
# -----------------------
def compute_days(start: date, end: date, is_half_day: bool = False) -> float:
    days = float((end - start).days + 1)
    if is_half_day:
        days -= 0.5
    return days


def compute_hours(days: float) -> float:
    return round(days * config.WORK_HOURS_PER_DAY, 2)


def build_submission_key(user_id: int, leave_type_id: int, start: date, end: date, days: float) -> str:
    return f"{user_id}:{leave_type_id}:{start.isoformat()}:{end.isoformat()}:{days:g}"


# -----------------------
# Status transitions
# -----------------------
def transition(leave: Leave, new_status: str):
    if new_status not in ALLOWED_TRANSITIONS.get(leave.status, set()):
        raise bad_request(
            "Invalid Action",
            f"Cannot change a {leave.status} leave application to {new_status}",
        )
    leave.status = new_status
    # the key only guards pending duplicates
    leave.submission_key = None


# -----------------------
# Submission checks
# -----------------------
def validate_dates(data: LeaveSubmission, today: Optional[date] = None):
    today = today or date.today()
    if data.start_date < today:
        raise bad_request("Invalid Date", "Start date cannot be in the past")
    if data.end_date < data.start_date:
        raise bad_request("Invalid Date", "End date cannot be before start date")


def get_active_leave_type(db: Session, leave_type_id: int) -> LeaveType:
    lt = db.query(LeaveType).filter(LeaveType.id == leave_type_id, LeaveType.is_active.is_(True)).first()
    if not lt:
        raise bad_request("Validation Error", "Valid leave type is required",
                          details=[{"field": "leave_type_id", "message": "Unknown or inactive leave type"}])
    return lt


def check_balance(db: Session, user_id: int, data: LeaveSubmission, days: float):
    year = get_financial_year(data.start_date)
    balance = get_or_init_balance(db, user_id, data.leave_type_id, year)
    log.info("Balance check user=%s type=%s fy=%s remaining=%s requested=%s",
             user_id, data.leave_type_id, year, balance.remaining_days if balance else None, days)
    if balance is None or (balance.remaining_days or 0) < days:
        raise bad_request("Insufficient Leave Balance", "You do not have enough leave days remaining")
    return balance


def find_overlapping(db: Session, user_id: int, start: date, end: date) -> Optional[Leave]:
    return (
        db.query(Leave)
        .filter(
            Leave.user_id == user_id,
            Leave.status.in_([PENDING, APPROVED]),
            and_(Leave.start_date <= end, Leave.end_date >= start),
        )
        .order_by(Leave.id.desc())
        .first()
    )


def find_pending_duplicate(db: Session, key: str) -> Optional[Leave]:
    return db.query(Leave).filter(Leave.submission_key == key).first()


def submit_leave(db: Session, user: User, data: LeaveSubmission,
                 attachment: Optional[UploadFile] = None, today: Optional[date] = None) -> Leave:
    validate_dates(data, today)
    get_active_leave_type(db, data.leave_type_id)

    days = compute_days(data.start_date, data.end_date, data.is_half_day)
    check_balance(db, user.id, data, days)

    key = build_submission_key(user.id, data.leave_type_id, data.start_date, data.end_date, days)
    duplicate = find_pending_duplicate(db, key)
    if duplicate:
        log.warning("Duplicate leave submission detected, existing id=%s", duplicate.id)
        raise conflict("Duplicate Submission",
                       "A similar leave request already exists. Please check your leave history.",
                       existing=serialize_leave(duplicate, include_people=False))

    overlapping = find_overlapping(db, user.id, data.start_date, data.end_date)
    if overlapping:
        raise bad_request("Overlapping Leave", "You have an overlapping leave request for these dates",
                          conflict_id=overlapping.id, conflict_status=overlapping.status)

    attachment_path = save_attachment(attachment) if attachment is not None else None

    leave = Leave(
        user_id=user.id,
        leave_type_id=data.leave_type_id,
        start_date=data.start_date,
        end_date=data.end_date,
        number_of_days=days,
        number_of_hours=compute_hours(days),
        is_half_day=data.is_half_day,
        half_day_type=data.half_day_type if data.is_half_day else None,
        reason=data.reason,
        emergency_contact=data.emergency_contact,
        handover_notes=data.handover_notes,
        attachment_path=attachment_path,
        status=PENDING,
        submission_key=key,
    )
    db.add(leave)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent identical submission won the unique submission_key
        db.rollback()
        remove_attachment(attachment_path)
        existing = find_pending_duplicate(db, key)
        log.warning("Duplicate leave submission prevented by unique key, existing id=%s",
                    existing.id if existing else None)
        raise conflict("Duplicate Submission",
                       "A similar leave request already exists. Please check your leave history.",
                       existing=serialize_leave(existing, include_people=False) if existing else None)
    db.refresh(leave)
    log.info("Leave created id=%s user=%s days=%s", leave.id, user.id, days)
    return leave


# -----------------------
# Decisions
# -----------------------
def team_member_ids(db: Session, manager_id: int) -> List[int]:
    return [row.id for row in db.query(User.id).filter(User.manager_id == manager_id)]


def can_view(user: User, leave: Leave) -> bool:
    return (
        leave.user_id == user.id
        or user.role in APPROVER_ROLES
        or (leave.approved_by is not None and leave.approved_by == user.id)
    )


def ensure_can_decide(approver: User, leave: Leave):
    if approver.role == "manager":
        requester_manager = leave.user.manager_id if leave.user else None
        if requester_manager != approver.id:
            raise forbidden("You can only approve leave applications from your team members")


def check_approval_balance(db: Session, leave: Leave):
    """Other requests approved since submission may have used up the balance."""
    year = get_financial_year(leave.start_date)
    balance = get_or_init_balance(db, leave.user_id, leave.leave_type_id, year)
    if balance is None or (balance.remaining_days or 0) < (leave.number_of_days or 0):
        log.warning("Approval of leave id=%s blocked: remaining=%s requested=%s",
                    leave.id, balance.remaining_days if balance else None, leave.number_of_days)
        raise bad_request("Insufficient Leave Balance",
                          "The employee does not have enough leave days remaining for this request",
                          remaining_days=balance.remaining_days if balance else 0)
    return balance


def decide_leave(db: Session, leave: Leave, approver: User, action: str,
                 rejection_reason: Optional[str] = None, manager_notes: Optional[str] = None) -> Leave:
    if leave.status != PENDING:
        raise bad_request("Invalid Action", "Only pending leave applications can be approved or rejected")
    ensure_can_decide(approver, leave)
    if action == "approve":
        check_approval_balance(db, leave)

    transition(leave, APPROVED if action == "approve" else REJECTED)
    leave.approved_by = approver.id
    leave.approved_at = datetime.utcnow()
    if manager_notes:
        leave.manager_notes = manager_notes
    if action == "reject":
        leave.rejection_reason = rejection_reason
    else:
        apply_leave_usage(db, leave)

    db.commit()
    db.refresh(leave)
    log.info("Leave id=%s %s by user %s", leave.id, leave.status, approver.id)
    return leave


def cancel_leave(db: Session, leave: Leave, user: User) -> Leave:
    if leave.user_id != user.id:
        raise forbidden("You can only cancel your own leave applications")
    if leave.status != PENDING:
        raise bad_request("Cannot Cancel", "Only pending leave applications can be cancelled")
    transition(leave, CANCELLED)
    db.commit()
    db.refresh(leave)
    return leave


# -----------------------
# Reads
# -----------------------
def paginate(query: Query, page: int, limit: int) -> Tuple[list, dict]:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_items": total,
        "items_per_page": limit,
    }


def serialize_leave(l: Leave, include_people: bool = True):
    data = {
        "id": l.id,
        "user_id": l.user_id,
        "leave_type_id": l.leave_type_id,
        "leave_type": serialize_leave_type(l.leave_type),
        "start_date": l.start_date.isoformat() if l.start_date else None,
        "end_date": l.end_date.isoformat() if l.end_date else None,
        "number_of_days": l.number_of_days,
        "number_of_hours": l.number_of_hours,
        "is_half_day": bool(l.is_half_day),
        "half_day_type": l.half_day_type,
        "reason": l.reason,
        "emergency_contact": l.emergency_contact,
        "handover_notes": l.handover_notes,
        "attachment_path": l.attachment_path,
        "status": l.status,
        "approved_by": l.approved_by,
        "approved_at": l.approved_at.isoformat() if l.approved_at else None,
        "rejection_reason": l.rejection_reason,
        "manager_notes": l.manager_notes,
        "created_at": l.created_at.isoformat() if l.created_at else None,
    }
    if include_people:
        data["user"] = serialize_user(l.user, brief=True)
        data["approver"] = serialize_user(l.approver, brief=True)
    return data
