"""Tests for the root/health endpoints and the catch-all error handler."""

from fastapi.testclient import TestClient

from database import get_db
from main import app


def test_root(client):
    assert client.get("/").json() == {"app": "Blog API", "status": "ok", "version": "1.0.0"}


def test_database_check(client, db):
    db["blog"].insert_one({"slug": "x"})
    body = client.get("/test").json()
    assert body["connection_status"] == "Connected"
    assert body["database_name"] == "blog_test"
    assert "blog" in body["collections"]


class ExplodingDatabase:
    def __getitem__(self, name):
        raise RuntimeError("boom")


def test_unexpected_errors_become_500():
    app.dependency_overrides[get_db] = lambda: ExplodingDatabase()
    try:
        resp = TestClient(app, raise_server_exceptions=False).get("/api/blogs")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 500
    assert resp.json() == {"detail": "An unexpected error occurred", "code": "INTERNAL_ERROR"}
