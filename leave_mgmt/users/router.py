# leave_mgmt/users/router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from leave_mgmt.audit.logger import AuditLogger
from leave_mgmt.auth.dependencies import get_current_user, is_hr_or_admin, is_manager_or_hr
from leave_mgmt.balances.financial_year import (
    get_current_financial_year, initialize_employee_leave_balances, serialize_balance,
)
from leave_mgmt.balances.models import LeaveBalance
from leave_mgmt.database import get_db
from leave_mgmt.errors import bad_request, conflict, forbidden, not_found
from leave_mgmt.users.models import User
from leave_mgmt.users.schemas import UserCreate, serialize_user

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
def list_users(
    role: Optional[str] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(is_manager_or_hr),
):
    q = db.query(User).filter(User.is_active.is_(True))
    if user.role == "manager":
        q = q.filter(User.manager_id == user.id)
    if role:
        q = q.filter(User.role == role.lower())
    if department:
        q = q.filter(User.department == department)
    return {"users": [serialize_user(u) for u in q.order_by(User.id).all()]}


@router.post("", status_code=201)
def create_user(payload: UserCreate, request: Request, db: Session = Depends(get_db),
                user: User = Depends(is_hr_or_admin)):
    if db.query(User).filter(User.email == payload.email).first():
        raise conflict("User Exists", "A user with this email already exists")
    if payload.manager_id is not None and not db.query(User).filter(User.id == payload.manager_id).first():
        raise bad_request("Validation Error", "Manager not found",
                          details=[{"field": "manager_id", "message": "Unknown manager"}])

    new_user = User(
        employee_id=payload.employee_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password_hash=generate_password_hash(payload.password),
        role=payload.role,
        department=payload.department,
        position=payload.position,
        manager_id=payload.manager_id,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    log.info("User %s created by %s", new_user.id, user.id)

    initialize_employee_leave_balances(db, new_user.id, get_current_financial_year())
    AuditLogger.log_data_modification(
        db, user.id, "user", new_user.id, "CREATE",
        new_values={"email": new_user.email, "role": new_user.role, "manager_id": new_user.manager_id},
        request=request,
    )
    return {"message": "User created successfully", "user": serialize_user(new_user)}


@router.get("/leave-balance")
def my_leave_balance(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    year = year or get_current_financial_year()
    initialize_employee_leave_balances(db, user.id, year)
    balances = (
        db.query(LeaveBalance)
        .filter(LeaveBalance.user_id == user.id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type_id)
        .all()
    )
    return {"year": year, "balances": [serialize_balance(b) for b in balances]}


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise not_found("User Not Found", "User not found")
    allowed = (
        target.id == user.id
        or user.role in ("hr", "admin")
        or (user.role == "manager" and target.manager_id == user.id)
    )
    if not allowed:
        raise forbidden("You do not have permission to view this user")
    return {"user": serialize_user(target)}
