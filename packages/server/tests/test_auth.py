"""
Tests for the authentication endpoints and bearer token handling.

Covers:
- Development login (token issue, role validation, user upsert)
- Claims echo
- 401 problem responses for missing, malformed and expired tokens
"""

from __future__ import annotations

from datetime import timedelta

from sqlmodel import select

from app.core.auth import create_access_token
from app.models.user import User


class TestLogin:
    async def test_issues_working_token(self, client):
        resp = await client.post(
            "/api/auth/login",
            json={"userId": "carol", "email": "Carol@Example.com", "role": "admin"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["userId"] == "carol"
        assert body["email"] == "carol@example.com"
        assert body["role"] == "Admin"
        assert "expiresAt" in body

        claims = await client.get(
            "/api/auth/claims", headers={"Authorization": f"Bearer {body['token']}"}
        )
        assert claims.status_code == 200
        assert claims.json()["role"] == "Admin"

    async def test_creates_user_row(self, client, session_factory):
        await client.post("/api/auth/login", json={"userId": "dave", "email": "dave@example.com"})
        async with session_factory() as s:
            result = await s.execute(select(User).where(User.external_id == "dave"))
            user = result.scalar_one()
        assert user.email == "dave@example.com"
        assert user.role == "User"

    async def test_invalid_role(self, client):
        resp = await client.post(
            "/api/auth/login",
            json={"userId": "eve", "email": "eve@example.com", "role": "Root"},
        )
        assert resp.status_code == 400
        assert resp.json()["title"] == "Invalid role"

    async def test_invalid_email(self, client):
        resp = await client.post("/api/auth/login", json={"userId": "eve", "email": "not-an-email"})
        assert resp.status_code == 400
        assert any(e["field"].endswith("email") for e in resp.json()["errors"])


class TestClaims:
    async def test_echoes_claims(self, client, alice_headers):
        resp = await client.get("/api/auth/claims", headers=alice_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["userId"] == "alice"
        assert body["email"] == "alice@example.com"
        assert body["role"] == "User"
        types = {c["type"] for c in body["allClaims"]}
        assert {"sub", "email", "role", "iss", "aud", "exp"} <= types


class TestUnauthorized:
    async def test_missing_token(self, client):
        resp = await client.get("/api/memberships")
        assert resp.status_code == 401
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["status"] == 401
        assert body["instance"] == "/api/memberships"

    async def test_not_bearer(self, client):
        resp = await client.get("/api/memberships", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    async def test_garbage_token(self, client):
        resp = await client.get("/api/memberships", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid or expired token"

    async def test_expired_token(self, client):
        token, _ = create_access_token(
            "alice", "alice@example.com", expires_delta=timedelta(seconds=-5)
        )
        resp = await client.get("/api/memberships", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_missing_email_claim(self, client):
        token, _ = create_access_token("alice", "")
        resp = await client.get("/api/memberships", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["title"] == "Email not found"
