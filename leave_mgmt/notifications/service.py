# leave_mgmt/notifications/service.py
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from leave_mgmt.notifications.models import Notification
from leave_mgmt.notifications.realtime import hub, user_room, role_room
from leave_mgmt.users.models import User, APPROVER_ROLES

log = logging.getLogger(__name__)


def _event_payload(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "category": n.category,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def _push(n: Notification):
    # never let the socket side break the database write that preceded it
    try:
        room = user_room(n.user_id) if n.user_id is not None else role_room(n.recipient_role)
        hub.emit(room, "newNotification", _event_payload(n))
    except Exception:
        log.exception("Realtime push failed for notification id=%s", n.id)


def create_notification(db: Session, **fields) -> Notification:
    notification = Notification(**fields)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    _push(notification)
    return notification


def send_bulk_notifications(db: Session, notifications: Iterable[Dict[str, Any]]) -> List[Notification]:
    rows = [Notification(**data) for data in notifications]
    if not rows:
        return []
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
        _push(row)
    return rows


def _approvers_for(db: Session, submitter: User) -> List[User]:
    if submitter.manager_id:
        manager = db.query(User).filter(User.id == submitter.manager_id, User.is_active.is_(True)).first()
        if manager:
            return [manager]
    return (
        db.query(User)
        .filter(User.role.in_(APPROVER_ROLES), User.is_active.is_(True), User.id != submitter.id)
        .order_by(User.id)
        .all()
    )


def create_leave_submission_notifications(db: Session, leave, submitter: User) -> List[Notification]:
    """
    Confirmation for the employee plus a request notice for the explicit
    manager, or for every active manager/HR/admin when there is none.
    """
    days = leave.number_of_days
    notifications = [{
        "user_id": submitter.id,
        "title": "Leave Submitted",
        "message": f"Your leave request for {days} day(s) has been submitted and is pending approval.",
        "type": "info",
        "category": "system",
        "recipient_role": "employee",
        "related_id": leave.id,
        "related_type": "leave",
    }]

    for approver in _approvers_for(db, submitter):
        notifications.append({
            "user_id": approver.id,
            "title": "New Leave Request",
            "message": f"{submitter.full_name} has submitted a leave request for {days} day(s).",
            "type": "info",
            "category": "leave_request",
            "recipient_role": "manager",
            "related_id": leave.id,
            "related_type": "leave",
        })

    created = send_bulk_notifications(db, notifications)
    log.info("Created %d notification(s) for leave id=%s", len(created), leave.id)
    return created


def send_leave_approval_notification(db: Session, leave, approver: User, action: str) -> Notification:
    approved = action == "approve"
    type_name = leave.leave_type.name if leave.leave_type else "leave"
    message = f"Your leave request for {type_name} has been {'approved' if approved else 'rejected'} by {approver.full_name}"
    if not approved and leave.rejection_reason:
        message += f": {leave.rejection_reason}"
    return create_notification(
        db,
        user_id=leave.user_id,
        title=f"Leave {'Approved' if approved else 'Rejected'}",
        message=message,
        type="success" if approved else "error",
        category="leave_approval" if approved else "leave_rejection",
        recipient_role="employee",
        related_id=leave.id,
        related_type="leave",
    )


def send_system_notification(db: Session, user_id: int, title: str, message: str,
                             type: str = "info", related_id: Optional[int] = None,
                             related_type: Optional[str] = None) -> Notification:
    return create_notification(
        db,
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        category="system",
        related_id=related_id,
        related_type=related_type,
    )


def send_reminder_notification(db: Session, user_id: int, title: str, message: str) -> Notification:
    return create_notification(
        db,
        user_id=user_id,
        title=title,
        message=message,
        type="warning",
        category="reminder",
    )


def send_role_notification(db: Session, role: str, title: str, message: str,
                           type: str = "info", category: str = "system") -> Notification:
    """A single row visible to everyone holding ``role``."""
    return create_notification(
        db,
        user_id=None,
        recipient_role=role.lower(),
        title=title,
        message=message,
        type=type,
        category=category,
    )
