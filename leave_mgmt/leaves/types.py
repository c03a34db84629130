# leave_mgmt/leaves/types.py
import logging

from sqlalchemy.orm import Session

from leave_mgmt.leaves.models import LeaveType

log = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES = [
    {"name": "Annual Leave", "description": "Regular annual leave", "default_days": 20, "color": "#4299e1"},
    {"name": "Sick Leave", "description": "Medical leave", "default_days": 10, "color": "#f56565"},
    {"name": "Personal Leave", "description": "Personal time off", "default_days": 5, "color": "#ed8936"},
    {"name": "Maternity Leave", "description": "Maternity leave", "default_days": 90, "color": "#9f7aea"},
    {"name": "Paternity Leave", "description": "Paternity leave", "default_days": 14, "color": "#38b2ac"},
]


def ensure_default_leave_types(db: Session):
    """Seed the default leave types when the table is empty; return the active ones."""
    if db.query(LeaveType).count() == 0:
        log.info("No leave types found - creating %d defaults", len(DEFAULT_LEAVE_TYPES))
        db.add_all([LeaveType(**t) for t in DEFAULT_LEAVE_TYPES])
        db.commit()
    return (
        db.query(LeaveType)
        .filter(LeaveType.is_active.is_(True))
        .order_by(LeaveType.id)
        .all()
    )


def serialize_leave_type(lt: LeaveType):
    if lt is None:
        return None
    return {
        "id": lt.id,
        "name": lt.name,
        "description": lt.description,
        "default_days": lt.default_days,
        "color": lt.color,
        "is_active": bool(lt.is_active),
    }
