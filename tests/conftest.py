# tests/conftest.py
import os

# must be set before wealthwise.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from wealthwise import models
from wealthwise.ai import Categorizer, get_categorizer
from wealthwise.clock import get_now
from wealthwise.database import SessionLocal, engine
from wealthwise.main import app


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fresh_tables():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    # Wednesday; the week runs Mon 2026-10-12 .. Sun 2026-10-18
    return FrozenClock(datetime(2026, 10, 14, 9, 0))


@pytest.fixture
def client(clock):
    app.dependency_overrides[get_now] = clock
    app.dependency_overrides[get_categorizer] = lambda: Categorizer(api_key="")
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_id(client):
    res = client.post("/register", json={"username": "asha", "password": "secret123", "name": "Asha"})
    assert res.status_code == 201
    return res.json()["id"]


@pytest.fixture
def other_user_id(client):
    res = client.post("/register", json={"username": "ravi", "password": "secret123", "name": "Ravi"})
    return res.json()["id"]
