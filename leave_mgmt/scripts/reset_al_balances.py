# leave_mgmt/scripts/reset_al_balances.py
"""
Preview or reset Annual Leave balances for every active employee.

Usage:
    # Dry run (preview):
    reset-al-balances

    # Apply changes:
    reset-al-balances --run [--year 2025]

Balances of leave types whose name contains "annual" are set to the type's
default_days with used and carried-over days cleared. Changes are applied in
one transaction. Take a database backup before applying in production.
"""
import argparse
import logging
import sys
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_mgmt import config
from leave_mgmt.balances.financial_year import find_balance, get_current_financial_year, recalculate_remaining
from leave_mgmt.balances.models import LeaveBalance
from leave_mgmt.database import SessionLocal, init_db
from leave_mgmt.leaves.models import LeaveType
from leave_mgmt.users.models import User

log = logging.getLogger(__name__)


def annual_leave_types(db: Session) -> List[LeaveType]:
    types = db.query(LeaveType).filter(LeaveType.is_active.is_(True)).order_by(LeaveType.id).all()
    return [lt for lt in types if lt.is_annual]


def build_preview(db: Session, year: int) -> List[dict]:
    """One entry per (active employee, annual leave type): the existing row (or None) and the target values."""
    leave_types = annual_leave_types(db)
    if not leave_types:
        return []

    preview = []
    for emp in db.query(User).filter(User.is_active.is_(True)).order_by(User.id).all():
        for lt in leave_types:
            preview.append({
                "employee": f"{emp.employee_id or emp.id} {emp.full_name}",
                "user_id": emp.id,
                "leave_type": lt.name,
                "leave_type_id": lt.id,
                "existing": find_balance(db, emp.id, lt.id, year),
                "desired": {
                    "year": year,
                    "total_days": float(lt.default_days or 0),
                    "used_days": 0.0,
                    "carried_over_days": 0.0,
                    "max_carry_over": float(config.DEFAULT_MAX_CARRY_OVER),
                },
            })
    return preview


def apply_reset(db: Session, preview: List[dict]):
    """Apply the preview in a single transaction. Returns (updated, created)."""
    updated = created = 0
    try:
        for p in preview:
            balance = p["existing"]
            if balance is None:
                balance = LeaveBalance(user_id=p["user_id"], leave_type_id=p["leave_type_id"], is_active=True)
                db.add(balance)
                created += 1
            else:
                updated += 1
            for field, value in p["desired"].items():
                setattr(balance, field, value)
            recalculate_remaining(balance)
        db.commit()
    except Exception:
        log.exception("Error applying changes, rolling back")
        db.rollback()
        raise
    return updated, created


def print_preview(preview: List[dict], limit: int = 20):
    print(f"\nPreview (first {limit}):")
    for idx, p in enumerate(preview[:limit], start=1):
        print(f"{idx}. {p['employee']} - {p['leave_type']}")
        e = p["existing"]
        if e is not None:
            print(f"   existing -> total_days: {e.total_days} used_days: {e.used_days} "
                  f"remaining_days: {e.remaining_days} carried_over: {e.carried_over_days}")
            print(f"   desired  -> total_days: {p['desired']['total_days']} used_days: 0 "
                  f"remaining_days: {p['desired']['total_days']}")
        else:
            print("   existing -> (none)")
            print(f"   desired  -> create balance with total_days: {p['desired']['total_days']}")
    print(f"\nTotal rows to examine: {len(preview)}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Preview or reset Annual Leave balances.")
    parser.add_argument("--run", action="store_true", help="apply the changes (default is a dry run)")
    parser.add_argument("--year", type=int, default=None, help="financial year (defaults to the current one)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
    year = args.year or get_current_financial_year()
    print("Reset AL balances script")
    print("Mode:", "APPLY" if args.run else "DRY-RUN (preview)")
    print("Target financial year:", year)

    init_db()
    db = SessionLocal()
    try:
        if not annual_leave_types(db):
            print('No leave types with "annual" found. Aborting.')
            return 1

        preview = build_preview(db, year)
        print_preview(preview)

        if not args.run:
            print("\nDRY-RUN complete. To apply changes run with --run")
            return 0

        updated, created = apply_reset(db, preview)
        print(f"\nAPPLY complete. Updated: {updated}, Created: {created}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
