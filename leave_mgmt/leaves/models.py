# leave_mgmt/leaves/models.py

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Date, Text, Float, Boolean, DateTime, ForeignKey,
)
from sqlalchemy.orm import relationship

from leave_mgmt.database import Base

# User must be registered before the relationships below resolve
from leave_mgmt.users.models import User  # noqa: F401

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
CANCELLED = "cancelled"
STATUSES = (PENDING, APPROVED, REJECTED, CANCELLED)

# one-way: a decided leave never moves again
ALLOWED_TRANSITIONS = {
    PENDING: {APPROVED, REJECTED, CANCELLED},
    APPROVED: set(),
    REJECTED: set(),
    CANCELLED: set(),
}


class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    default_days = Column(Float, nullable=False, default=0)
    color = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def is_annual(self):
        return "annual" in (self.name or "").lower()

    def __repr__(self):
        return f"<LeaveType id={self.id} name={self.name}>"


class Leave(Base):
    __tablename__ = "leaves"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    number_of_days = Column(Float, nullable=False)
    number_of_hours = Column(Float, nullable=True)
    is_half_day = Column(Boolean, nullable=False, default=False)
    half_day_type = Column(String(20), nullable=True)   # morning / afternoon
    reason = Column(Text, nullable=False)
    emergency_contact = Column(String(100), nullable=True)
    handover_notes = Column(Text, nullable=True)
    attachment_path = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=PENDING, index=True)
    # pending / approved / rejected / cancelled
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    manager_notes = Column(Text, nullable=True)
    # set while pending only; NULLs do not collide
    submission_key = Column(String(120), unique=True, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[approved_by])
    leave_type = relationship("LeaveType")

    def __repr__(self):
        return f"<Leave id={self.id} user_id={self.user_id} status={self.status}>"
