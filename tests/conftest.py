import os
import sys
import tempfile
from datetime import date, timedelta

# Configuration is read at import time, so the environment is prepared before
# anything from ``leave_mgmt`` is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_PATH"] = tempfile.mkdtemp(prefix="leave-uploads-")
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["SESSION_SECRET"] = "test-session-secret"
for key in ("SMTP_HOST", "SMTP_USER", "SMTP_PASS"):
    os.environ.pop(key, None)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from werkzeug.security import generate_password_hash  # noqa: E402

from leave_mgmt.auth.jwt_handler import token_for_user  # noqa: E402
from leave_mgmt.database import Base, SessionLocal, engine, init_db  # noqa: E402
from leave_mgmt.leaves.types import ensure_default_leave_types  # noqa: E402
from leave_mgmt.main import app  # noqa: E402
from leave_mgmt.users.models import User  # noqa: E402


@pytest.fixture
def tables():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(tables):
    return TestClient(app)


@pytest.fixture
def leave_types(db):
    return {lt.name: lt.id for lt in ensure_default_leave_types(db)}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="employee", manager=None, email=None, password="secret123", department="Engineering"):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            employee_id=f"E{n:03d}",
            first_name=role.capitalize(),
            last_name=f"User{n}",
            email=email or f"{role}{n}@example.com",
            password_hash=generate_password_hash(password),
            role=role,
            department=department,
            manager_id=manager.id if manager else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def team(make_user):
    """A manager with one direct report, plus HR and admin accounts."""
    manager = make_user("manager")
    return {
        "manager": manager,
        "employee": make_user("employee", manager=manager),
        "hr": make_user("hr"),
        "admin": make_user("admin"),
    }


def auth(user):
    return {"Authorization": f"Bearer {token_for_user(user)}"}


def future(days):
    return date.today() + timedelta(days=days)


def leave_form(leave_type_id, start, end, **extra):
    data = {
        "leave_type_id": str(leave_type_id),
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "reason": "Family event out of town",
    }
    data.update(extra)
    return data
