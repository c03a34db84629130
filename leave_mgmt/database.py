# leave_mgmt/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from leave_mgmt import config

# MySQL via mysql-connector in production; SQLite URLs are accepted for
# local runs and the test-suite.
_engine_kwargs = {"echo": config.SQL_ECHO}
if config.DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    if config.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        _engine_kwargs["poolclass"] = StaticPool
else:
    _engine_kwargs["pool_pre_ping"] = True

engine = create_engine(config.DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables known to the models (idempotent)."""
    # model modules register themselves on Base.metadata when imported
    from leave_mgmt.users import models as _users  # noqa: F401
    from leave_mgmt.leaves import models as _leaves  # noqa: F401
    from leave_mgmt.balances import models as _balances  # noqa: F401
    from leave_mgmt.notifications import models as _notifications  # noqa: F401
    from leave_mgmt.audit import models as _audit  # noqa: F401

    Base.metadata.create_all(bind=engine)
