"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database created from the models.
Every test runs inside a transaction that is rolled back afterwards; code
under test may commit freely, each commit only releases a savepoint.
"""
import os
import sys

# Must be set before core.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA=")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("WODIFY_RATE_LIMIT_DELAY_MS", "0")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from core.database import Base, engine  # noqa: E402
import models  # noqa: E402,F401
from models import Gym, Member  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _create_schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a database session with transactional rollback.

    All changes made during the test are rolled back after the test completes.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(autouse=True)
def sent_tasks(monkeypatch):
    """Record Celery dispatches instead of talking to a broker."""
    from tasks import celery_app

    sent = []

    class _Result:
        id = "test-task-id"

    def fake_send_task(name, args=None, kwargs=None, **options):
        sent.append((name, list(args or [])))
        return _Result()

    monkeypatch.setattr(celery_app, "send_task", fake_send_task)
    return sent


@pytest.fixture
def gym(db_session):
    gym = Gym(name="Iron Temple", location="Austin")
    db_session.add(gym)
    db_session.commit()
    db_session.refresh(gym)
    return gym


@pytest.fixture
def add_member(db_session, gym):
    """Factory: add_member(name, join_date, rate=..., cancel_date=..., email=...)."""

    def _add(name, join_date, rate=100, cancel_date=None, email=None, status=None):
        member = Member(
            gym_id=gym.id,
            name=name,
            email=email,
            status=status or ("cancelled" if cancel_date else "active"),
            join_date=join_date,
            cancel_date=cancel_date,
            monthly_rate=Decimal(str(rate)),
            source="manual",
        )
        db_session.add(member)
        db_session.flush()
        return member

    return _add


@pytest.fixture
def as_of():
    return date(2024, 6, 20)
