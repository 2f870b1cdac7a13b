"""
Shared fixtures.

Provides a SQLite test database rebuilt for every test, a TestClient wired to
it, an in-memory stand-in for the Redis rate-limit counter and helpers for
registering principals and organizations.
"""
import os
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Must be set before the application settings are imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from queueline.main import app
from queueline.core.database import get_db, get_redis, Base

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

class InMemoryRedis:
    """The subset of the Redis client used by the rate limiter."""

    def __init__(self):
        self.data = {}

    def setex(self, key, time, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def redis_store():
    store = InMemoryRedis()
    app.dependency_overrides[get_redis] = lambda: store
    yield store
    app.dependency_overrides.pop(get_redis, None)

@pytest.fixture
def client(test_db, redis_store):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

def next_weekday(weekday: int) -> date:
    """The first date after today falling on ``weekday`` (Monday is 0)."""
    today = date.today()
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)

def register(client, email, role="user", name="Test User", password="TestPassword123"):
    """Register a principal and return (user id, auth headers)."""
    response = client.post("/api/v1/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
        "phone": "555-0100",
        "role": role
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}

MONDAY_HOURS = [
    {"day": "Monday", "start_time": "09:00", "end_time": "17:00", "is_open": True}
]

def create_organization(client, headers, **overrides):
    payload = {
        "name": "Central Clinic",
        "description": "Walk-in and booked consultations",
        "category": "Clinic",
        "working_hours": MONDAY_HOURS,
        "experts": [
            {"name": "Dr. A", "specialization": "General Practice", "available": True},
            {"name": "Dr. B", "specialization": "Cardiology", "available": False}
        ],
        "appointment_duration": 20,
        "address": "1 Main St",
        "phone": "555-0199"
    }
    payload.update(overrides)
    response = client.post("/api/v1/organizations", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["organization"]

@pytest.fixture
def clinic(client):
    """An organization owner, their clinic and a booking user."""
    owner_id, owner_headers = register(client, "owner@example.com", role="organization", name="Clinic Owner")
    organization = create_organization(client, owner_headers)
    user_id, user_headers = register(client, "patient@example.com", name="Pat Patient")
    return {
        "organization": organization,
        "owner_id": owner_id,
        "owner_headers": owner_headers,
        "user_id": user_id,
        "user_headers": user_headers,
    }
