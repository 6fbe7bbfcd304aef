"""Shared fixtures: an in-memory MongoDB and a TestClient wired to it."""

import os

# Must be set before config is imported
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-blog-api")
os.environ.setdefault("DATABASE_NAME", "blog_test")
os.environ.setdefault("DEBUG", "true")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient()["blog_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user and return ``(user, auth_headers)``."""

    def _register(username="alice", email=None, password="secret123", algo="bcrypt"):
        resp = client.post(
            "/api/auth/register",
            json={
                "username": username,
                "email": email or f"{username}@example.com",
                "password": password,
                "algo": algo,
            },
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _register


@pytest.fixture
def create_blog(client):
    """Create a blog as the given user and return its JSON."""

    def _create(headers, **overrides):
        payload = {
            "title": "Hello World",
            "content": "This is the body of a blog post.",
            "category": "Technology",
            "status": "published",
        }
        payload.update(overrides)
        resp = client.post("/api/blogs", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["blog"]

    return _create
