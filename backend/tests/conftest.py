"""Pytest fixtures — SQLite database for fast, isolated tests."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from datetime import datetime, timezone, timedelta
from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from gathering.clock import utcnow
from gathering.database import Base, get_db
from gathering.main import app
from gathering.services import notification_service

# Import all models so they register with Base.metadata
from gathering.models.user import User                    # noqa: F401
from gathering.models.event import Event                  # noqa: F401
from gathering.models.rsvp import RSVP                    # noqa: F401
from gathering.models.waitlist import WaitlistEntry       # noqa: F401
from gathering.models.notification import Notification    # noqa: F401
from gathering.models.invite_link import InviteLink       # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


class FrozenClock:
    """Stand-in for ``utcnow`` that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session, closed after the test."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def clock():
    return FrozenClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture(scope="function")
def client(db_engine, clock):
    """FastAPI TestClient with the database and clock dependencies overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[utcnow] = clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sink():
    """Capture deliveries instead of logging them."""

    class _RecordingSink:
        def __init__(self):
            self.delivered = []

        def deliver(self, notification):
            self.delivered.append((notification.user_id, notification.type.value))

    recording = _RecordingSink()
    previous = notification_service.set_sink(recording)
    yield recording
    notification_service.set_sink(previous)


# ---------------------------------------------------------------------------
# Helpers: create records via the API, return the response JSON
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, name: str = "Test User") -> dict:
    """Helper — POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={"display_name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_event(
    client: TestClient,
    creator_id: str,
    title: str = "Test Event",
    start: Optional[datetime] = None,
    publish: bool = True,
    **fields,
) -> dict:
    """Helper — POST /api/events (published a week out by default)."""
    if start is None:
        start = datetime.now(timezone.utc) + timedelta(days=7)
    payload = {
        "creator_id": creator_id,
        "title": title,
        "start_time": start.isoformat(),
        "publish": publish,
    }
    for key, value in fields.items():
        payload[key] = value.isoformat() if isinstance(value, datetime) else value
    resp = client.post("/api/events/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def rsvp(client: TestClient, event_id: str, user_id: str, response: str = "YES"):
    """Helper — POST /api/events/{id}/rsvps and return the raw response."""
    return client.post(f"/api/events/{event_id}/rsvps", json={"user_id": user_id, "response": response})


def error_code(resp) -> str:
    return resp.json()["detail"]["code"]
