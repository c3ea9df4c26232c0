"""
Shared fixtures for all tests.
Runs against a single in-memory SQLite database; get_db is overridden so
endpoints and tests share one session.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("REALTIME_BACKEND", "memory")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.db.events  # noqa: E402,F401
from app.core.security import create_access_token  # noqa: E402
from app.db.base_class import Base  # noqa: E402
from app.db.session import SessionLocal, engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.request import Request  # noqa: E402
from app.models.user import Child, User  # noqa: E402


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
        # Lifespan shutdown disposes the engine; release the shared connection first.
        db.close()
    app.dependency_overrides.clear()


# --- Helpers ---

class Factory:
    """Row builders for the roster and the request board."""

    def __init__(self, db):
        self.db = db

    def user(self, user_id: str, user_type: str, **kwargs) -> User:
        user = User(
            id=user_id,
            full_name=kwargs.pop("full_name", user_id.title()),
            user_type=user_type,
            **kwargs,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def child(self, child_id: str, parent_id: str, **kwargs) -> Child:
        child = Child(
            id=child_id,
            parent_id=parent_id,
            full_name=kwargs.pop("full_name", child_id.title()),
            **kwargs,
        )
        self.db.add(child)
        self.db.commit()
        return child

    def request(self, requester_id: str, text: str = "Need a maths tutor", **kwargs) -> Request:
        request = Request(requester_id=requester_id, text=text, **kwargs)
        self.db.add(request)
        self.db.commit()
        return request

    def add(self, row):
        self.db.add(row)
        self.db.commit()
        return row


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def auth():
    def headers(user_id: str, role: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
    return headers


@pytest.fixture
def people(make):
    """Two teachers, a student, a parent with one child."""
    make.user("teacher-1", "teacher", full_name="Ama Mensah", city="Accra")
    make.user("teacher-2", "teacher", full_name="Kofi Boateng", city="Kumasi")
    make.user("student-1", "student", full_name="Yaw Asante", city="Accra")
    make.user("parent-1", "parent", full_name="Efua Owusu", city="Tema")
    make.child("child-1", "parent-1", full_name="Kwame Owusu")
    return make


@pytest.fixture
def today():
    return date(2026, 10, 17)
