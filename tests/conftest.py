"""
Shared fixtures: the app runs against an in-memory SQLite database and every
test starts from empty tables.
"""
import os
import sys
import tempfile
from pathlib import Path

# Settings are read at import time, so they go in before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "pms_test_logs.txt"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CHANNEL_WEBHOOK_SECRET", "test-channel-secret")

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import connection
from database.connection import Base
from main import app


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Secret123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    app.dependency_overrides[connection.get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register_and_login(client, username: str) -> dict:
    response = client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    response = client.post("/auth/login", data={"username": username, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def login(client):
    """Registers a user and returns bearer headers for it"""
    return lambda username: register_and_login(client, username)


@pytest.fixture
def auth_headers(client):
    return register_and_login(client, "owner")


@pytest.fixture
def other_headers(client):
    """A second owner, used to check that rows of other owners stay hidden"""
    return register_and_login(client, "intruder")


@pytest.fixture
def hotel(client, auth_headers):
    response = client.post("/hotels", json={"name": "Palm Residence", "city": "Riyadh"}, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def unit(client, auth_headers, hotel):
    response = client.post(
        "/units",
        json={"hotel_id": hotel["id"], "number": "101", "name": "Room 101", "price_per_night": 100},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def make_reservation(client, auth_headers, unit):
    """Factory creating a booking on the default unit"""
    def _make(check_in, check_out, **fields):
        body = {
            "unit_id": fields.pop("unit_id", unit["id"]),
            "check_in": check_in.isoformat(),
            "check_out": check_out.isoformat(),
        }
        if "guest_id" not in fields:
            body["guest"] = fields.pop("guest", {"first_name": "Sara", "last_name": "Ali"})
        body.update(fields)
        response = client.post("/reservations", json=body, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
