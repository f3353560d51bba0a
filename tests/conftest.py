"""
Test configuration and fixtures
"""

import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from config import Settings
from infrastructure.database import Database
from main import create_app

TEST_SECRET = "test-secret-key-for-task-service"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database file"""
    return Settings(
        database_path=str(tmp_path / "tasks.db"),
        jwt_secret_key=TEST_SECRET,
        request_timeout_seconds=5.0,
    )


@pytest.fixture
def token_secret():
    return TEST_SECRET


@pytest.fixture
def database(settings):
    db = Database(settings.database_path)
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_token():
    """Build a signed HS256 token for a user id"""

    def _make(user_id, expires_in=3600, secret=TEST_SECRET, **claims):
        payload = {"sub": str(user_id), "exp": int(time.time()) + expires_in}
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(user_id):
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _header


@pytest.fixture
def client(settings, database):
    app = create_app(settings, repository=database)
    with TestClient(app) as test_client:
        yield test_client
