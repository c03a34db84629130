# leave_mgmt/users/schemas.py
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from leave_mgmt.users.models import ROLES


class UserCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    email: str = Field(..., min_length=3, max_length=150)
    password: str = Field(..., min_length=6)
    role: str = "employee"
    employee_id: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    manager_id: Optional[int] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Valid email is required")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v):
        v = (v or "").strip().lower()
        if v not in ROLES:
            raise ValueError(f"Role must be one of {', '.join(ROLES)}")
        return v


def serialize_user(u, brief: bool = False):
    if u is None:
        return None
    data = {
        "id": u.id,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "full_name": u.full_name,
        "email": u.email,
        "department": u.department,
        "position": u.position,
    }
    if not brief:
        data.update({
            "employee_id": u.employee_id,
            "role": u.role,
            "manager_id": u.manager_id,
            "is_active": bool(u.is_active),
        })
    return data
