# leave_mgmt/scripts/create_users.py
"""Seed one account per role so a fresh database can be logged into."""
import logging

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from leave_mgmt.balances.financial_year import get_current_financial_year, initialize_employee_leave_balances
from leave_mgmt.database import SessionLocal, init_db
from leave_mgmt.leaves.types import ensure_default_leave_types
from leave_mgmt.users.models import User

log = logging.getLogger(__name__)

DEMO_USERS = [
    # (employee_id, first, last, email, role, password, manager email)
    ("A-001", "Alice", "Admin", "admin@example.com", "admin", "adminpass", None),
    ("H-001", "Hannah", "HR", "hr@example.com", "hr", "hrpass", None),
    ("M-001", "Mark", "Manager", "manager@example.com", "manager", "managerpass", None),
    ("E-001", "Ethan", "Employee", "emp@example.com", "employee", "emppass", "manager@example.com"),
]


def create_users(db: Session):
    ensure_default_leave_types(db)
    created = []
    for employee_id, first, last, email, role, password, manager_email in DEMO_USERS:
        if db.query(User).filter(User.email == email).first():
            print("Skipping (exists):", email)
            continue
        manager = db.query(User).filter(User.email == manager_email).first() if manager_email else None
        user = User(
            employee_id=employee_id,
            first_name=first,
            last_name=last,
            email=email,
            role=role,
            department="Operations",
            password_hash=generate_password_hash(password),
            manager_id=manager.id if manager else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        initialize_employee_leave_balances(db, user.id, get_current_financial_year())
        created.append(user)
        print("Inserted:", email)
    print("Done.")
    return created


def main():
    logging.basicConfig(level=logging.INFO)
    init_db()
    db = SessionLocal()
    try:
        create_users(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
