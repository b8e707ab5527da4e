import os
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_JSON", "true")

from eventledger import auth, models
from eventledger.api import app
from eventledger.database import Base, engine, get_db, SessionLocal
from eventledger.store import EventStore


@pytest.fixture(scope="session", autouse=True)
def _ensure_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(db_session):
    return EventStore(db_session)


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def helpers(db_session, store, client):
    counter = {"users": 0, "events": 0}
    base_created = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def make_user(
        role: models.UserRole = models.UserRole.student,
        department: str | None = "Computer Science",
        academic_year: str | None = "2nd Year",
        email: str | None = None,
    ) -> models.User:
        counter["users"] += 1
        user = models.User(
            email=email or f"user{counter['users']}@test.edu",
            name=f"User {counter['users']}",
            role=role,
            department=department,
            academic_year=academic_year,
        )
        db_session.add(user)
        db_session.commit()
        return user

    def make_event(departments: list[str] | None = None, **overrides) -> models.Event:
        counter["events"] += 1
        fields = {
            "title": f"Beach Cleanup {counter['events']}",
            "description": "Community service at the shore",
            "date": date(2026, 11, 1),
            "start_time": "09:00",
            "end_time": "12:00",
            "location": "North Beach",
            "hours": 3.0,
            "max_participants": 0,
            "status": models.EventStatus.active.value,
            "is_visible_to_students": True,
            "created_at": base_created + timedelta(minutes=counter["events"]),
        }
        fields.update(overrides)
        event = models.Event(**fields)
        for name in departments or []:
            department = db_session.query(models.Department).filter_by(name=name).first()
            event.departments.append(department or models.Department(name=name))
        db_session.add(event)
        db_session.commit()
        return event

    def add_entry(event: models.Event, user: models.User, **fields) -> models.AttendanceEntry:
        entry = models.AttendanceEntry(
            user_id=user.id,
            status=fields.pop("status", models.AttendanceStatus.pending.value),
            registration_approved=fields.pop("registration_approved", False),
            **fields,
        )
        event.attendance.append(entry)
        db_session.commit()
        return entry

    def token_for(user: models.User) -> str:
        return auth.create_access_token(
            {"sub": str(user.id), "role": user.role.value, "department": user.department}
        )

    def auth_header(user: models.User) -> dict:
        return {"Authorization": f"Bearer {token_for(user)}"}

    return {
        "client": client,
        "db": db_session,
        "store": store,
        "make_user": make_user,
        "make_event": make_event,
        "add_entry": add_entry,
        "token_for": token_for,
        "auth_header": auth_header,
    }
