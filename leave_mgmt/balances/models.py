# leave_mgmt/balances/models.py

from datetime import datetime

from sqlalchemy import (
    Column, Integer, Float, Text, Boolean, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from leave_mgmt.database import Base
from leave_mgmt.users.models import User  # noqa: F401
from leave_mgmt.leaves.models import LeaveType  # noqa: F401


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("user_id", "leave_type_id", "year", name="uq_balance_user_type_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False, index=True)   # financial-year start year
    total_days = Column(Float, nullable=False, default=0)
    used_days = Column(Float, nullable=False, default=0)
    remaining_days = Column(Float, nullable=False, default=0)
    carried_over_days = Column(Float, nullable=False, default=0)
    max_carry_over = Column(Float, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")
    leave_type = relationship("LeaveType")

    def __repr__(self):
        return (f"<LeaveBalance id={self.id} user_id={self.user_id} "
                f"type={self.leave_type_id} year={self.year} remaining={self.remaining_days}>")
