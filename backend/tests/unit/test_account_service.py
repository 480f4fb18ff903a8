"""Unit tests for AccountService."""

import pytest
from sqlalchemy import func, select

from restodesk.core.exceptions import ConflictError, InvalidCredentials, NotFound
from restodesk.models import Account, Profile
from restodesk.services.accounts import AccountService, hash_password, verify_password

async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


def test_password_hash_round_trip():
    hashed = hash_password("Secret123")
    assert hashed != "Secret123"
    assert hashed.startswith("$argon2id$")
    assert verify_password("Secret123", hashed) is True
    assert verify_password("secret123", hashed) is False
    assert verify_password("Secret123", "not-a-hash") is False


@pytest.mark.asyncio
async def test_register_writes_profile_and_account(session_factory):
    async with session_factory() as session:
        registration = await AccountService(session).register(
            name="Ada", email="ada@example.com", contact_number="1", password="Secret123"
        )
        assert registration.profile.email == registration.account.email
        assert registration.account.password_hash != "Secret123"
        assert await _count(session, Profile) == 1
        assert await _count(session, Account) == 1


@pytest.mark.asyncio
async def test_duplicate_registration_leaves_no_partial_rows(session_factory):
    async with session_factory() as session:
        service = AccountService(session)
        await service.register(
            name="Ada", email="ada@example.com", contact_number="1", password="Secret123"
        )
        with pytest.raises(ConflictError):
            await service.register(
                name="Ada 2", email="ada@example.com", contact_number="2", password="Secret123"
            )
        assert await _count(session, Profile) == 1
        assert await _count(session, Account) == 1


@pytest.mark.asyncio
async def test_authenticate(session_factory):
    async with session_factory() as session:
        service = AccountService(session)
        await service.register(
            name="Ada", email="ada@example.com", contact_number="1", password="Secret123"
        )
        account = await service.authenticate("ada@example.com", "Secret123")
        assert account.email == "ada@example.com"

        with pytest.raises(InvalidCredentials):
            await service.authenticate("ada@example.com", "wrong")
        with pytest.raises(InvalidCredentials):
            await service.authenticate("ghost@example.com", "Secret123")


@pytest.mark.asyncio
async def test_deactivate_never_deletes(session_factory):
    async with session_factory() as session:
        service = AccountService(session)
        registration = await service.register(
            name="Ada", email="ada@example.com", contact_number="1", password="Secret123"
        )
        account = await service.deactivate(registration.account.id)
        assert account.is_active == 0
        assert await _count(session, Account) == 1

        with pytest.raises(NotFound):
            await service.update_profile(account.id, {"name": "Nope"})
