import io
import os

# Configure before the app modules build their engine and settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from taskmanager.core.database import Base, SessionLocal, engine, init_db
from taskmanager.core.security import create_access_token
from taskmanager.main import app
from taskmanager.models.task import Task
from taskmanager.models.user import User
from taskmanager.services.user_service import apply_pending_side_effects

USER_ONE = {
    "name": "Mike",
    "email": "mike@example.com",
    "password": "56what!!",
}

USER_TWO = {
    "name": "Jess",
    "email": "jess@example.com",
    "password": "myhouse099@@",
}


def _create_user(data: dict) -> dict:
    """Insert a user holding one session token, return its id and token"""
    with SessionLocal() as session:
        user = User(**data, tokens=[])
        apply_pending_side_effects(user)
        session.add(user)
        session.flush()
        token = create_access_token(data={"sub": str(user.id)})
        user.tokens = [token]
        session.commit()
        return {"id": user.id, "token": token, **data}


def get_user(user_id: int):
    """Fresh, detached copy of a user row (None when missing)"""
    with SessionLocal() as session:
        user = session.get(User, user_id)
        if user is not None:
            session.expunge(user)
        return user


def get_task(task_id: int):
    with SessionLocal() as session:
        task = session.get(Task, task_id)
        if task is not None:
            session.expunge(task)
        return task


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def setup_database():
    """Every test starts from empty tables"""
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def user_one():
    return _create_user(USER_ONE)


@pytest.fixture()
def user_two():
    return _create_user(USER_TWO)


@pytest.fixture()
def task_one(user_one):
    with SessionLocal() as session:
        task = Task(description="First task", completed=False, owner_id=user_one["id"])
        session.add(task)
        session.commit()
        return {"id": task.id, "owner_id": user_one["id"]}


@pytest.fixture()
def jpeg_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (400, 300), color=(200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()
