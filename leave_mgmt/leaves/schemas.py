# leave_mgmt/leaves/schemas.py
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field


class LeaveSubmission(BaseModel):
    leave_type_id: int
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=10, max_length=500)
    is_half_day: bool = False
    half_day_type: Optional[Literal["morning", "afternoon"]] = None
    emergency_contact: Optional[str] = Field(None, min_length=5, max_length=100)
    handover_notes: Optional[str] = Field(None, max_length=1000)


class LeaveDecision(BaseModel):
    action: Literal["approve", "reject"]
    rejection_reason: Optional[str] = Field(None, min_length=5, max_length=500)
    manager_notes: Optional[str] = Field(None, max_length=1000)
