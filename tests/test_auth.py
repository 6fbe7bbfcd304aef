"""Tests for registration, login and the bearer-token dependency."""

import jwt
import pytest
from pymongo.errors import DuplicateKeyError

import auth
from auth import create_jwt, hash_password, verify_password
from config import settings


class TestPasswords:
    @pytest.mark.parametrize("algo", ["bcrypt", "argon2"])
    def test_hash_and_verify(self, algo):
        pwd_hash = hash_password("hunter22", algo)
        assert pwd_hash != "hunter22"
        assert verify_password("hunter22", pwd_hash, algo)
        assert not verify_password("wrong-password", pwd_hash, algo)

    def test_verify_garbage_hash_is_false(self):
        assert not verify_password("hunter22", "not-a-hash", "bcrypt")
        assert not verify_password("hunter22", "not-a-hash", "argon2")


class TestRegister:
    def test_register_returns_token_and_user(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "Alice@Example.com", "password": "secret123"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["token"]
        assert body["user"]["username"] == "alice"
        assert body["user"]["email"] == "alice@example.com"
        assert "password_hash" not in body["user"]

    def test_password_is_stored_hashed(self, client, db, register):
        register("alice")
        stored = db["user"].find_one({"username": "alice"})
        assert stored["password_hash"] != "secret123"
        assert stored["algo"] == "bcrypt"

    def test_argon2_registration(self, client, db, register):
        register("bob", algo="argon2")
        assert db["user"].find_one({"username": "bob"})["algo"] == "argon2"
        resp = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "secret123"})
        assert resp.status_code == 200

    def test_duplicate_email_rejected(self, client, register):
        register("alice", email="same@example.com")
        resp = client.post(
            "/api/auth/register",
            json={"username": "other", "email": "same@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Email already registered"

    def test_duplicate_username_rejected(self, client, register):
        register("alice")
        resp = client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "new@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Username already taken"

    def test_concurrent_duplicate_insert_is_conflict(self, client, monkeypatch):
        def duplicate_insert(*args, **kwargs):
            raise DuplicateKeyError("E11000 duplicate key error collection: user index: email_1")

        monkeypatch.setattr(auth, "create_document", duplicate_insert)
        resp = client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "alice@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "CONFLICT"

    def test_invalid_fields_return_error_array(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"username": "a!", "email": "not-an-email", "password": "123"},
        )
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json()["errors"]}
        assert fields == {"username", "email", "password"}


class TestLogin:
    def test_login_success(self, client, register):
        register("alice")
        resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"})
        assert resp.status_code == 200
        assert resp.json()["user"]["username"] == "alice"

    def test_wrong_password(self, client, register):
        register("alice")
        resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid credentials"

    def test_unknown_email(self, client):
        resp = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
        assert resp.status_code == 401


class TestCurrentUser:
    def test_me(self, client, register):
        user, headers = register("alice")
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == user["id"]

    def test_missing_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "No token, authorization denied"

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token is not valid"

    def test_expired_token(self, client, register):
        user, _ = register("alice")
        token = jwt.encode({"sub": user["id"], "exp": 1}, settings.JWT_SECRET, algorithm="HS256")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token expired"

    def test_token_for_deleted_user(self, client, db, register):
        _, headers = register("alice")
        db["user"].delete_many({})
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401

    def test_token_without_subject(self, client, register):
        register("alice")
        token = create_jwt({"username": "alice"})
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token is not valid"

    def test_token_with_malformed_subject(self, client):
        token = create_jwt({"sub": "not-an-object-id"})
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401


class TestProfile:
    def test_update_profile(self, client, register):
        _, headers = register("alice")
        resp = client.put(
            "/api/auth/profile",
            json={"bio": "  Writes about tea.  ", "avatar": "https://img.example.com/a.png"},
            headers=headers,
        )
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["bio"] == "Writes about tea."
        assert user["avatar"] == "https://img.example.com/a.png"

    def test_bio_too_long(self, client, register):
        _, headers = register("alice")
        resp = client.put("/api/auth/profile", json={"bio": "x" * 501}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["message"] == "Bio must be at most 500 characters"
