"""Pytest fixtures: per-test SQLite file database for fast, isolated tests."""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from training_bookings.database import Base, get_db
from training_bookings.identity import Actor, Role
from training_bookings.main import app
from training_bookings.models import Person, TrainingRecord, TrainingSession, DueStatus, SessionStatus

COMPANY_ID = "company-1"
OTHER_COMPANY_ID = "company-2"
COURSE_ID = "course-fire-safety"

# user_id, display name, company, home
PEOPLE = [
    ("alice", "Alice Adams", COMPANY_ID, "home-a"),
    ("bob", "Bob Brown", COMPANY_ID, "home-a"),
    ("carol", "Carol Clark", COMPANY_ID, "home-b"),
    ("dave", "Dave Davies", COMPANY_ID, "home-b"),
    ("erin", "Erin Evans", COMPANY_ID, "home-a"),
    ("eve", "Eve Edwards", OTHER_COMPANY_ID, "home-z"),
]


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def people(db):
    """Seed the directory with two companies' worth of people."""
    for user_id, name, company_id, home_id in PEOPLE:
        db.add(Person(user_id=user_id, display_name=name, company_id=company_id, home_id=home_id))
    db.commit()
    return {p[0]: p for p in PEOPLE}


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------
def actor_headers(user_id: str, role: str = "STAFF", company_id: Optional[str] = COMPANY_ID,
                  home_ids: Optional[list] = None) -> dict:
    """Headers the upstream identity resolver would forward for this caller."""
    headers = {"X-User-Id": user_id, "X-User-Role": role}
    if company_id:
        headers["X-Company-Id"] = company_id
    if home_ids:
        headers["X-Home-Ids"] = ",".join(home_ids)
    return headers


COMPANY_HEADERS = actor_headers("co-owner", role="COMPANY")
ADMIN_HEADERS = actor_headers("root", role="ADMIN", company_id=None)
MANAGER_HEADERS = actor_headers("mgr", role="MANAGER", home_ids=["home-a"])


def make_actor(user_id: str, role: Role = Role.STAFF, company_id: Optional[str] = COMPANY_ID,
               home_ids: Optional[list] = None) -> Actor:
    return Actor(user_id=user_id, role=role, company_id=company_id, scope_home_ids=home_ids or [])


COMPANY_ACTOR = make_actor("co-owner", Role.COMPANY)


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------
def create_test_session(client: TestClient, capacity: int = 3, headers: Optional[dict] = None,
                        start_offset_days: int = 7, **fields) -> dict:
    """Helper: POST /api/sessions and return response JSON."""
    starts_at = datetime.now(timezone.utc) + timedelta(days=start_offset_days)
    payload = {
        "course_id": COURSE_ID,
        "starts_at": starts_at.isoformat(),
        "capacity": capacity,
    }
    payload.update(fields)
    resp = client.post("/api/sessions/", json=payload, headers=headers or COMPANY_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


def make_session(db, capacity: int = 3, company_id: str = COMPANY_ID, **fields) -> TrainingSession:
    """Insert a published session straight into the database."""
    training_session = TrainingSession(
        company_id=company_id,
        course_id=fields.pop("course_id", COURSE_ID),
        starts_at=fields.pop("starts_at", datetime.now(timezone.utc) + timedelta(days=7)),
        capacity=capacity,
        status=fields.pop("status", SessionStatus.PUBLISHED),
        version=1,
        created_by="co-owner",
        **fields,
    )
    db.add(training_session)
    db.commit()
    db.refresh(training_session)
    return training_session


def add_training_record(db, user_id: str, status: DueStatus, next_due_date: Optional[date],
                        course_id: str = COURSE_ID, company_id: str = COMPANY_ID) -> TrainingRecord:
    record = TrainingRecord(
        user_id=user_id,
        course_id=course_id,
        company_id=company_id,
        next_due_date=next_due_date,
        status=status,
    )
    db.add(record)
    db.commit()
    return record


def claim(client: TestClient, session_id: str, user_id: str, **header_kwargs):
    return client.post(f"/api/sessions/{session_id}/claim", headers=actor_headers(user_id, **header_kwargs))


def invite(client: TestClient, session_id: str, user_ids: list, priority_user_ids: Optional[list] = None,
           headers: Optional[dict] = None):
    return client.post(
        f"/api/sessions/{session_id}/invite",
        json={"user_ids": user_ids, "priority_user_ids": priority_user_ids or []},
        headers=headers or COMPANY_HEADERS,
    )


def get_stats(client: TestClient, session_id: str) -> dict:
    resp = client.get(f"/api/sessions/{session_id}/stats", headers=COMPANY_HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()
