"""
Pytest fixtures for testing
"""
import os

# must be set before smartlife.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from smartlife.main import app

PASSWORD = "secret123"


@pytest.fixture
def client():
    """Test client; every context starts with an empty in-memory database."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def create_user(client):
    """Register a user and return bearer headers for it."""
    def _create(email: str = "user@example.com", name: str = "Test User", password: str = PASSWORD) -> dict:
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )
        assert response.status_code == 201, response.text
        token = response.json()["data"]["token"]
        return {"Authorization": f"Bearer {token}"}
    return _create


@pytest.fixture
def auth_headers(create_user):
    """Bearer headers for the default test user"""
    return create_user()


@pytest.fixture
def other_headers(create_user):
    """Bearer headers for a second, unrelated user"""
    return create_user(email="other@example.com", name="Other User")
