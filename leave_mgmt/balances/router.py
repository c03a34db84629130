# leave_mgmt/balances/router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from leave_mgmt.audit.logger import AuditLogger
from leave_mgmt.auth.dependencies import get_current_user, is_hr_or_admin
from leave_mgmt.balances.financial_year import (
    financial_year_bounds,
    get_current_financial_year,
    get_default_balance,
    initialize_employee_leave_balances,
    process_financial_year_rollover,
    recalculate_remaining,
    serialize_balance,
)
from leave_mgmt.balances.models import LeaveBalance
from leave_mgmt.database import get_db
from leave_mgmt.errors import not_found
from leave_mgmt.notifications.service import send_role_notification, send_system_notification
from leave_mgmt.users.models import User
from leave_mgmt.users.schemas import serialize_user

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin-balances"])
employee_router = APIRouter(prefix="/api/leave-balances", tags=["leave-balances"])


class BalanceUpdate(BaseModel):
    balance_id: int
    total_days: Optional[float] = Field(None, ge=0)
    used_days: Optional[float] = Field(None, ge=0)
    carried_over_days: Optional[float] = Field(None, ge=0)
    max_carry_over: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)


class RolloverRequest(BaseModel):
    new_year: int = Field(..., ge=2020, le=2100)


def _balances_for(db: Session, user_id: int, year: int):
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.user_id == user_id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type_id)
        .all()
    )


def _get_employee(db: Session, employee_id: int) -> User:
    employee = db.query(User).filter(User.id == employee_id).first()
    if not employee:
        raise not_found("Employee Not Found", "Employee not found")
    return employee


@router.get("/financial-year-info")
def financial_year_info(user: User = Depends(is_hr_or_admin)):
    year = get_current_financial_year()
    start, end = financial_year_bounds(year)
    return {
        "current_financial_year": year,
        "label": f"{year}-{year + 1}",
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
    }


@router.get("/employees/leave-balances")
def all_employee_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(is_hr_or_admin),
):
    year = year or get_current_financial_year()
    q = db.query(User).filter(User.is_active.is_(True))
    if department:
        q = q.filter(User.department == department)

    employees = []
    for emp in q.order_by(User.id).all():
        initialize_employee_leave_balances(db, emp.id, year)
        employees.append({
            "employee": serialize_user(emp),
            "balances": [serialize_balance(b) for b in _balances_for(db, emp.id, year)],
        })
    return {"year": year, "employees": employees}


@router.get("/employees/{employee_id}/leave-balance")
def employee_balance(
    employee_id: int,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    user: User = Depends(is_hr_or_admin),
):
    employee = _get_employee(db, employee_id)
    year = year or get_current_financial_year()
    initialize_employee_leave_balances(db, employee.id, year)
    return {
        "employee": serialize_user(employee),
        "year": year,
        "balances": [serialize_balance(b) for b in _balances_for(db, employee.id, year)],
    }


@router.put("/employees/{employee_id}/leave-balance")
def update_employee_balance(
    employee_id: int,
    payload: BalanceUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(is_hr_or_admin),
):
    employee = _get_employee(db, employee_id)
    balance = (
        db.query(LeaveBalance)
        .filter(LeaveBalance.id == payload.balance_id, LeaveBalance.user_id == employee.id)
        .first()
    )
    if not balance:
        raise not_found("Balance Not Found", "Leave balance not found for this employee")

    old_values = serialize_balance(balance)
    old_values.pop("leave_type", None)

    for field in ("total_days", "used_days", "carried_over_days", "max_carry_over", "notes"):
        value = getattr(payload, field)
        if value is not None:
            setattr(balance, field, value)
    recalculate_remaining(balance)
    db.commit()
    db.refresh(balance)
    log.info("Balance id=%s for user %s updated by %s", balance.id, employee.id, user.id)

    new_values = serialize_balance(balance)
    new_values.pop("leave_type", None)
    AuditLogger.log_data_modification(
        db, user.id, "leave_balance", balance.id, "UPDATE",
        old_values=old_values, new_values=new_values, request=request,
    )

    try:
        type_name = balance.leave_type.name if balance.leave_type else "leave"
        send_system_notification(
            db, employee.id,
            "Leave Balance Updated",
            f"Your {type_name} balance for {balance.year} was updated. Remaining: {balance.remaining_days} day(s).",
            related_id=balance.id, related_type="leave_balance",
        )
    except Exception:
        log.exception("Failed to notify user %s about balance update", employee.id)
        db.rollback()

    return {"message": "Leave balance updated successfully", "balance": serialize_balance(balance)}


@router.post("/financial-year-rollover")
def financial_year_rollover(payload: RolloverRequest, request: Request,
                            db: Session = Depends(get_db), user: User = Depends(is_hr_or_admin)):
    processed = process_financial_year_rollover(db, payload.new_year)

    AuditLogger.log_data_modification(
        db, user.id, "leave_balance", None, "ROLLOVER",
        new_values={"new_year": payload.new_year, "employees_processed": processed},
        request=request, severity="warning",
    )

    try:
        send_role_notification(
            db, "employee",
            "New Financial Year",
            f"Leave balances for {payload.new_year}-{payload.new_year + 1} are now available.",
        )
    except Exception:
        log.exception("Failed to broadcast rollover notification")
        db.rollback()

    return {
        "message": f"Financial year rollover to {payload.new_year} completed",
        "new_year": payload.new_year,
        "employees_processed": processed,
    }


@router.get("/default-balance")
def default_balance(db: Session = Depends(get_db), user: User = Depends(is_hr_or_admin)):
    return {"default_balance": get_default_balance(db)}


# ---------------- Employee self-service ----------------
@employee_router.get("/my-balances")
def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    year = year or get_current_financial_year()
    initialize_employee_leave_balances(db, user.id, year)
    return {"year": year, "balances": [serialize_balance(b) for b in _balances_for(db, user.id, year)]}
