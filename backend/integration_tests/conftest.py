import os
from datetime import date
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import text


if os.environ.get("RUN_INTEGRATION_TESTS") != "1":
    pytest.skip(
        "Integration tests are disabled. Set RUN_INTEGRATION_TESTS=1 to enable.",
        allow_module_level=True,
    )

if not os.environ.get("DATABASE_URL"):
    pytest.skip("DATABASE_URL must be set for integration tests.", allow_module_level=True)

os.environ.setdefault("SECRET_KEY", "integration-test-secret")

from eventledger import auth, models  # noqa: E402
from eventledger.api import app  # noqa: E402
from eventledger.database import Base, SessionLocal, engine, get_db  # noqa: E402


def _run_migrations() -> None:
    backend_root = Path(__file__).resolve().parents[1]
    alembic_ini = backend_root / "alembic.ini"
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(backend_root / "alembic"))
    command.upgrade(config, "head")


@pytest.fixture(scope="session", autouse=True)
def _ensure_schema():
    _run_migrations()
    yield
    Base.metadata.drop_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
        conn.execute(text("DROP TYPE IF EXISTS userrole"))


@pytest.fixture()
def db_session():
    db = SessionLocal()
    try:
        tables = [t.name for t in Base.metadata.sorted_tables]
        if tables:
            db.execute(text(f"TRUNCATE TABLE {', '.join(tables)} RESTART IDENTITY CASCADE"))
            db.commit()
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def helpers(client, db_session):
    def make_user(email: str, role: models.UserRole = models.UserRole.student, department: str = "Nursing"):
        user = models.User(email=email, name=email.split("@")[0], role=role, department=department)
        db_session.add(user)
        db_session.commit()
        return user

    def make_event(**overrides):
        fields = {
            "title": "Integration Event",
            "date": date(2026, 11, 15),
            "start_time": "08:00",
            "end_time": "12:00",
            "location": "Main Hall",
            "hours": 4.0,
            "max_participants": 10,
            "department": "Nursing",
        }
        fields.update(overrides)
        event = models.Event(**fields)
        db_session.add(event)
        db_session.commit()
        return event

    def auth_header(user) -> dict:
        token = auth.create_access_token({"sub": str(user.id), "role": user.role.value, "department": user.department})
        return {"Authorization": f"Bearer {token}"}

    return {
        "client": client,
        "db": db_session,
        "make_user": make_user,
        "make_event": make_event,
        "auth_header": auth_header,
    }
