"""Tests for the profile, password and status endpoints."""

import asyncio

import pytest
from sqlalchemy import select

from restodesk.models import Account, Profile

from .conftest import TEST_PASSWORD

pytestmark = pytest.mark.asyncio


async def _register(async_client, email: str, contact: str) -> None:
    response = await async_client.post(
        "/auth/register",
        json={
            "name": "Other Owner",
            "email": email,
            "contactNumber": contact,
            "password": TEST_PASSWORD,
        },
    )
    assert response.status_code == 201


async def test_get_user_profile(async_client, auth_headers, registered_user):
    response = await async_client.get("/auth/getuserprofile", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "ada@example.com"
    assert data["fullName"] == "Ada Lovelace"
    assert data["restaurantName"] == "Analytical Eats"
    assert data["loginId"] == registered_user["loginId"]
    assert data["isSetup"] is False
    assert data["lastLoginAt"] is not None


async def test_get_user_profile_requires_token(async_client):
    response = await async_client.get("/auth/getuserprofile")
    assert response.status_code == 401


class TestUpdateProfile:
    async def test_partial_update_leaves_other_fields(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserprofile", json={"name": "Ada King"}, headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["fullName"] == "Ada King"
        assert data["contactNumber"] == "+15550001111"
        assert data["restaurantName"] == "Analytical Eats"

    async def test_email_change_moves_both_records(
        self, async_client, auth_headers, session_factory
    ):
        response = await async_client.put(
            "/auth/updateuserprofile",
            json={"email": "countess@example.com"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "countess@example.com"

        async with session_factory() as session:
            account = (
                await session.execute(
                    select(Account).where(Account.email == "countess@example.com")
                )
            ).scalar_one_or_none()
            profile = (
                await session.execute(
                    select(Profile).where(Profile.email == "countess@example.com")
                )
            ).scalar_one_or_none()
        assert account is not None
        assert profile is not None

        login = await async_client.post(
            "/auth/login", json={"email": "countess@example.com", "password": TEST_PASSWORD}
        )
        assert login.status_code == 200

    async def test_email_taken_by_another_account(self, async_client, auth_headers):
        await _register(async_client, "grace@example.com", "+15550002222")
        response = await async_client.put(
            "/auth/updateuserprofile",
            json={"email": "grace@example.com"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["data"]["field"] == "email"

    async def test_contact_taken_by_another_account(self, async_client, auth_headers):
        await _register(async_client, "grace@example.com", "+15550002222")
        response = await async_client.put(
            "/auth/updateuserprofile",
            json={"contactNumber": "+15550002222"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["data"]["field"] == "contactNumber"


class TestUpdatePassword:
    async def test_change_password(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserpassword",
            json={
                "currentPassword": TEST_PASSWORD,
                "newPassword": "NewSecret456",
                "confirmPassword": "NewSecret456",
            },
            headers=auth_headers,
        )
        assert response.status_code == 200

        old = await async_client.post(
            "/auth/login", json={"email": "ada@example.com", "password": TEST_PASSWORD}
        )
        assert old.status_code == 400
        new = await async_client.post(
            "/auth/login", json={"email": "ada@example.com", "password": "NewSecret456"}
        )
        assert new.status_code == 200

    async def test_confirmation_mismatch(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserpassword",
            json={
                "currentPassword": TEST_PASSWORD,
                "newPassword": "NewSecret456",
                "confirmPassword": "Different456",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "do not match" in response.json()["message"]

    async def test_too_short(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserpassword",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "abc", "confirmPassword": "abc"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "at least 6" in response.json()["message"]

    async def test_wrong_current_password(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserpassword",
            json={
                "currentPassword": "not-my-password",
                "newPassword": "NewSecret456",
                "confirmPassword": "NewSecret456",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Current password is incorrect"

    async def test_concurrent_changes_do_not_both_win(self, async_client, auth_headers):
        """Of two racing changes from the same old password, at most one lands."""

        async def change(new_password: str):
            return await async_client.put(
                "/auth/updateuserpassword",
                json={
                    "currentPassword": TEST_PASSWORD,
                    "newPassword": new_password,
                    "confirmPassword": new_password,
                },
                headers=auth_headers,
            )

        first, second = await asyncio.gather(change("FirstNew111"), change("SecondNew222"))
        statuses = [first.status_code, second.status_code]
        assert statuses.count(200) == 1
        assert set(statuses) - {200} <= {400, 409}

        logins = [
            await async_client.post(
                "/auth/login", json={"email": "ada@example.com", "password": pw}
            )
            for pw in ("FirstNew111", "SecondNew222")
        ]
        assert [r.status_code for r in logins].count(200) == 1


class TestUpdateStatus:
    async def test_set_auto_disabled(self, async_client, auth_headers, session_factory):
        response = await async_client.put(
            "/auth/updateuserstatus", json={"isActive": 2}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["isActive"] == 2

        async with session_factory() as session:
            profile = (
                await session.execute(select(Profile).where(Profile.email == "ada@example.com"))
            ).scalar_one()
        assert profile.is_active == 2

    async def test_rejects_unknown_status(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserstatus", json={"isActive": 5}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_disabled_account_cannot_login(self, async_client, auth_headers):
        await async_client.put(
            "/auth/updateuserstatus", json={"isActive": 0}, headers=auth_headers
        )
        response = await async_client.post(
            "/auth/login", json={"email": "ada@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Account is inactive"

    async def test_disabled_account_can_be_reactivated(self, async_client, auth_headers):
        response = await async_client.put(
            "/auth/updateuserstatus", json={"isActive": 2}, headers=auth_headers
        )
        assert response.status_code == 200

        response = await async_client.get("/auth/verify", headers=auth_headers)
        assert response.status_code == 403

        response = await async_client.put(
            "/auth/updateuserstatus", json={"isActive": 1}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["isActive"] == 1

        response = await async_client.get("/auth/verify", headers=auth_headers)
        assert response.status_code == 200
