# leave_mgmt/balances/financial_year.py
"""
Financial-year helpers and per-employee leave balance bookkeeping.

A financial year is named by the calendar year it starts in; with the default
FY_START_MONTH of 4 the year 2025 runs from 2025-04-01 to 2026-03-31.

Every write path keeps ``remaining_days = total_days - used_days +
carried_over_days``; nothing in the database enforces it.
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leave_mgmt import config
from leave_mgmt.balances.models import LeaveBalance
from leave_mgmt.leaves.models import LeaveType
from leave_mgmt.leaves.types import ensure_default_leave_types, serialize_leave_type
from leave_mgmt.users.models import User

log = logging.getLogger(__name__)


def get_financial_year(d: date, start_month: Optional[int] = None) -> int:
    start_month = start_month or config.FY_START_MONTH
    return d.year if d.month >= start_month else d.year - 1


def get_current_financial_year(today: Optional[date] = None) -> int:
    return get_financial_year(today or date.today())


def financial_year_bounds(year: int, start_month: Optional[int] = None) -> Tuple[date, date]:
    start_month = start_month or config.FY_START_MONTH
    start = date(year, start_month, 1)
    if start_month == 1:
        end = date(year, 12, 31)
    else:
        end = date(year + 1, start_month, 1) - timedelta(days=1)
    return start, end


def recalculate_remaining(balance: LeaveBalance) -> LeaveBalance:
    balance.remaining_days = round(
        float(balance.total_days or 0) - float(balance.used_days or 0) + float(balance.carried_over_days or 0),
        2,
    )
    return balance


def _max_carry_over_for(leave_type: LeaveType) -> float:
    return config.DEFAULT_MAX_CARRY_OVER if leave_type.is_annual else 0.0


def _new_balance(user_id: int, leave_type: LeaveType, year: int) -> LeaveBalance:
    balance = LeaveBalance(
        user_id=user_id,
        leave_type_id=leave_type.id,
        year=year,
        total_days=float(leave_type.default_days or 0),
        used_days=0.0,
        carried_over_days=0.0,
        max_carry_over=_max_carry_over_for(leave_type),
        is_active=True,
    )
    return recalculate_remaining(balance)


def initialize_employee_leave_balances(db: Session, user_id: int, year: int) -> List[LeaveBalance]:
    """
    Create any missing balances for the user's financial year from leave-type
    defaults. When a concurrent request inserts the same rows first, the
    unique (user, type, year) key rejects ours and theirs are kept.
    """
    leave_types = ensure_default_leave_types(db)
    existing = {
        b.leave_type_id
        for b in db.query(LeaveBalance).filter(LeaveBalance.user_id == user_id, LeaveBalance.year == year)
    }
    created = []
    for lt in leave_types:
        if lt.id in existing:
            continue
        balance = _new_balance(user_id, lt, year)
        db.add(balance)
        created.append(balance)

    if not created:
        return created
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        log.warning("Leave balances for user %s in FY %s were created concurrently", user_id, year)
        return []
    log.info("Initialized %d leave balance(s) for user %s in FY %s", len(created), user_id, year)
    return created


def find_balance(db: Session, user_id: int, leave_type_id: int, year: int) -> Optional[LeaveBalance]:
    return db.query(LeaveBalance).filter(
        LeaveBalance.user_id == user_id,
        LeaveBalance.leave_type_id == leave_type_id,
        LeaveBalance.year == year,
    ).first()


def get_or_init_balance(db: Session, user_id: int, leave_type_id: int, year: int) -> Optional[LeaveBalance]:
    balance = find_balance(db, user_id, leave_type_id, year)
    if balance is None:
        initialize_employee_leave_balances(db, user_id, year)
        balance = find_balance(db, user_id, leave_type_id, year)
    return balance


def apply_leave_usage(db: Session, leave) -> Optional[LeaveBalance]:
    """
    Consume the leave's days from its financial year's balance.
    Does not commit; the caller's approval commit covers it. The balance is
    expected to exist already (see ``leaves.service.check_approval_balance``).
    """
    year = get_financial_year(leave.start_date)
    balance = find_balance(db, leave.user_id, leave.leave_type_id, year)
    if balance is None:
        log.warning("No balance row for leave id=%s (type %s inactive?)", leave.id, leave.leave_type_id)
        return None

    balance.used_days = float(balance.used_days or 0) + float(leave.number_of_days or 0)
    recalculate_remaining(balance)
    log.info("Balance id=%s: used=%s remaining=%s after leave id=%s",
             balance.id, balance.used_days, balance.remaining_days, leave.id)
    return balance


def process_financial_year_rollover(db: Session, new_year: int) -> int:
    """
    Apply default allotments for ``new_year`` to every active employee and
    carry forward unused annual leave, capped at each balance's max_carry_over.
    Runs as one transaction; returns the number of employees processed.
    """
    leave_types = ensure_default_leave_types(db)
    employees = db.query(User).filter(User.is_active.is_(True)).order_by(User.id).all()

    try:
        for emp in employees:
            for lt in leave_types:
                previous = find_balance(db, emp.id, lt.id, new_year - 1)
                carried = 0.0
                max_carry = _max_carry_over_for(lt)
                if previous is not None:
                    max_carry = float(previous.max_carry_over or 0)
                    if lt.is_annual and (previous.remaining_days or 0) > 0:
                        carried = min(float(previous.remaining_days), max_carry)

                target = find_balance(db, emp.id, lt.id, new_year)
                if target is None:
                    target = _new_balance(emp.id, lt, new_year)
                    db.add(target)
                target.total_days = float(lt.default_days or 0)
                target.carried_over_days = carried
                target.max_carry_over = max_carry
                recalculate_remaining(target)
        db.commit()
    except Exception:
        log.exception("Financial year rollover to %s failed, rolling back", new_year)
        db.rollback()
        raise

    log.info("Financial year rollover to %s processed %d employee(s)", new_year, len(employees))
    return len(employees)


def get_default_balance(db: Session) -> Dict[str, float]:
    by_name = {lt.name.lower(): lt for lt in ensure_default_leave_types(db)}

    def days(keyword, fallback):
        for name, lt in by_name.items():
            if keyword in name:
                return float(lt.default_days or 0)
        return float(fallback)

    return {
        "annual_leave": days("annual", 20),
        "sick_leave": days("sick", 10),
        "personal_leave": days("personal", 5),
        "max_carry_over": float(config.DEFAULT_MAX_CARRY_OVER),
    }


def serialize_balance(b: LeaveBalance):
    return {
        "id": b.id,
        "user_id": b.user_id,
        "leave_type_id": b.leave_type_id,
        "leave_type": serialize_leave_type(b.leave_type),
        "year": b.year,
        "total_days": b.total_days,
        "used_days": b.used_days,
        "remaining_days": b.remaining_days,
        "carried_over_days": b.carried_over_days,
        "max_carry_over": b.max_carry_over,
        "notes": b.notes,
    }
