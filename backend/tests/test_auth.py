"""Tests for registration, login and token verification endpoints."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from restodesk.core.config import settings
from restodesk.services.tokens import issue_token

from .conftest import TEST_PASSWORD

pytestmark = pytest.mark.asyncio


async def test_register_creates_account(async_client, registration_payload):
    """Registration returns 201 with the profile and the login id."""
    response = await async_client.post("/auth/register", json=registration_payload)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["status"] == 201
    assert body["message"] == "User registered successfully"

    data = body["data"]
    assert data["loginId"]
    assert data["user"]["email"] == "ada@example.com"
    assert data["user"]["fullName"] == "Ada Lovelace"
    assert data["user"]["contactNumber"] == "+15550001111"
    assert data["user"]["isVerified"] is False
    assert data["user"]["isActive"] == 1
    assert "password" not in str(data).lower()


async def test_register_accepts_full_name_alias(async_client, registration_payload):
    payload = dict(registration_payload)
    payload["fullName"] = payload.pop("name")
    response = await async_client.post("/auth/register", json=payload)
    assert response.status_code == 201
    assert response.json()["data"]["user"]["fullName"] == "Ada Lovelace"


async def test_register_duplicate_email_conflicts(
    async_client, registered_user, registration_payload
):
    """A second registration with the same email is rejected with 409."""
    response = await async_client.post("/auth/register", json=registration_payload)
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["data"]["field"] == "email"


async def test_register_missing_fields_is_validation_error(async_client):
    response = await async_client.post("/auth/register", json={"email": "x@example.com"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    fields = {err["field"] for err in body["data"]["errors"]}
    assert "password" in fields


async def test_register_rejects_malformed_email(async_client, registration_payload):
    payload = dict(registration_payload, email="not-an-email")
    response = await async_client.post("/auth/register", json=payload)
    assert response.status_code == 400


async def test_login_returns_token(async_client, registered_user, registration_payload):
    response = await async_client.post(
        "/auth/login",
        json={"email": registration_payload["email"], "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token"].count(".") == 2
    assert data["user"]["email"] == "ada@example.com"
    assert data["user"]["isSetup"] is False
    assert "passwordHash" not in data["user"]


async def test_login_wrong_password(async_client, registered_user):
    response = await async_client.post(
        "/auth/login", json={"email": "ada@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid credentials"


async def test_login_unknown_email_looks_like_wrong_password(async_client):
    response = await async_client.post(
        "/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid credentials"


async def test_login_unverified_blocked_when_required(
    async_client, registered_user, monkeypatch
):
    monkeypatch.setattr(settings, "require_verified_login", True)
    response = await async_client.post(
        "/auth/login", json={"email": "ada@example.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Account not verified"


async def test_verification_checked_before_status_when_required(
    async_client, auth_headers, monkeypatch
):
    await async_client.put(
        "/auth/updateuserstatus", json={"isActive": 0}, headers=auth_headers
    )
    monkeypatch.setattr(settings, "require_verified_login", True)
    response = await async_client.post(
        "/auth/login", json={"email": "ada@example.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Account not verified"


async def test_two_logins_issue_distinct_tokens(async_client, registered_user):
    credentials = {"email": "ada@example.com", "password": TEST_PASSWORD}
    first = await async_client.post("/auth/login", json=credentials)
    second = await async_client.post("/auth/login", json=credentials)
    assert first.json()["data"]["token"] != second.json()["data"]["token"]


class TestVerifyToken:
    """GET /auth/verify classifies every token failure as 401."""

    async def test_valid_token(self, async_client, auth_headers):
        response = await async_client.get("/auth/verify", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "ada@example.com"

    async def test_missing_header(self, async_client):
        response = await async_client.get("/auth/verify")
        assert response.status_code == 401
        assert "missing" in response.json()["message"].lower()

    async def test_wrong_scheme(self, async_client, auth_token):
        response = await async_client.get(
            "/auth/verify", headers={"Authorization": f"Token {auth_token}"}
        )
        assert response.status_code == 401
        assert "Bearer <token>" in response.json()["message"]

    async def test_expired_token(self, async_client, registered_user):
        account = SimpleNamespace(email="ada@example.com", id=registered_user["loginId"])
        expired = issue_token(account, now=datetime.now(UTC) - timedelta(hours=2))
        response = await async_client.get(
            "/auth/verify", headers={"Authorization": f"Bearer {expired}"}
        )
        assert response.status_code == 401
        assert response.json()["message"] == (
            "Token has expired. Please login again to get a new token"
        )

    async def test_tampered_token(self, async_client, auth_token):
        header, payload, signature = auth_token.split(".")
        forged = f"{header}.{payload}.{signature[::-1]}"
        response = await async_client.get(
            "/auth/verify", headers={"Authorization": f"Bearer {forged}"}
        )
        assert response.status_code == 401

    async def test_garbage_token(self, async_client):
        response = await async_client.get(
            "/auth/verify", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["message"].startswith("Invalid token")

    async def test_token_for_inactive_account(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserstatus", json={"isActive": 0}, headers=auth_headers
        )
        assert response.status_code == 200

        response = await async_client.get("/auth/verify", headers=auth_headers)
        assert response.status_code == 403
