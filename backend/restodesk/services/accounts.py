"""Account lifecycle: registration, login, profile and password management."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restodesk.core.config import settings
from restodesk.core.exceptions import (
    AccountInactive,
    AccountNotVerified,
    ConflictError,
    InvalidCredentials,
    NotFound,
    ValidationError,
    conflict_from_integrity_error,
)
from restodesk.models.account import ACCOUNT_ACTIVE, ACCOUNT_DISABLED, Account
from restodesk.models.profile import Profile
from restodesk.services.notifications import mask_email
from restodesk.services.tokens import issue_token

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Argon2id - Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the email is unknown so both failure paths cost the same
_DUMMY_HASH = ph.hash("restodesk-dummy-password")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


@dataclass(frozen=True)
class Registration:
    profile: Profile
    account: Account


@dataclass(frozen=True)
class LoginSession:
    token: str
    account: Account


class AccountService:
    """Service for account operations. Uses the request-scoped session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_account_by_email(self, email: str) -> Account | None:
        result = await self.session.execute(select(Account).where(Account.email == email))
        return result.scalar_one_or_none()

    async def get_account_by_id(self, account_id: UUID) -> Account | None:
        result = await self.session.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def get_profile_by_email(self, email: str) -> Profile | None:
        result = await self.session.execute(select(Profile).where(Profile.email == email))
        return result.scalar_one_or_none()

    async def _require_account(self, account_id: UUID) -> Account:
        account = await self.get_account_by_id(account_id)
        if account is None:
            raise NotFound("User not found")
        return account

    async def _require_active_account(self, account_id: UUID) -> Account:
        account = await self._require_account(account_id)
        if account.is_active != ACCOUNT_ACTIVE:
            raise NotFound("User not found or inactive")
        return account

    async def _require_profile(self, email: str) -> Profile:
        profile = await self.get_profile_by_email(email)
        if profile is None:
            raise NotFound("User profile not found")
        return profile

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    async def register(
        self,
        name: str,
        email: str,
        contact_number: str,
        password: str,
        restaurant_name: str | None = None,
    ) -> Registration:
        """Create the profile and login identity for a new account.

        Both rows are written in one transaction, profile first. If the
        identity insert fails the profile insert is rolled back with it.
        """
        existing_profile = await self.get_profile_by_email(email)
        existing_account = await self.get_account_by_email(email)
        if existing_profile is not None or existing_account is not None:
            raise ConflictError("Email already registered", field="email")

        profile = Profile(
            full_name=name,
            email=email,
            contact_number=contact_number,
            restaurant_name=restaurant_name,
            is_verified=False,
            is_active=ACCOUNT_ACTIVE,
        )
        account = Account(
            email=email,
            password_hash=hash_password(password),
            is_verified=False,
            is_active=ACCOUNT_ACTIVE,
        )
        try:
            self.session.add(profile)
            await self.session.flush()
            self.session.add(account)
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise conflict_from_integrity_error(e) from e

        await self.session.refresh(profile)
        await self.session.refresh(account)
        logger.info(
            "Registered account",
            extra={"account_id": str(account.id), "email": mask_email(email)},
        )
        return Registration(profile=profile, account=account)

    async def authenticate(self, email: str, password: str) -> Account:
        """Check credentials and account status.

        Raises InvalidCredentials for both "no such email" and "wrong
        password" so responses cannot be used to enumerate accounts.
        """
        account = await self.get_account_by_email(email)

        if account is None:
            verify_password(password, _DUMMY_HASH)
            raise InvalidCredentials()

        if not verify_password(password, account.password_hash):
            raise InvalidCredentials()

        if settings.require_verified_login and not account.is_verified:
            raise AccountNotVerified()

        if account.is_active != ACCOUNT_ACTIVE:
            raise AccountInactive()

        return account

    async def login(self, email: str, password: str) -> LoginSession:
        account = await self.authenticate(email, password)

        account.last_login_at = datetime.now(UTC)
        await self.session.commit()

        token = issue_token(account)
        logger.info(
            "User logged in", extra={"account_id": str(account.id), "email": mask_email(email)}
        )
        return LoginSession(token=token, account=account)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_profile(self, account_id: UUID) -> tuple[Account, Profile]:
        account = await self._require_account(account_id)
        profile = await self._require_profile(account.email)
        return account, profile

    async def update_profile(
        self, account_id: UUID, fields: dict[str, Any]
    ) -> tuple[Account, Profile]:
        """Apply the provided fields only. An email change moves both records."""
        account = await self._require_active_account(account_id)
        profile = await self._require_profile(account.email)

        new_email = fields.get("email")
        if new_email is not None and new_email != account.email:
            clash = await self.session.execute(
                select(Account.id).where(
                    Account.email == new_email,
                    Account.id != account.id,
                    Account.is_active == ACCOUNT_ACTIVE,
                )
            )
            if clash.first() is not None:
                raise ConflictError("Email already in use by another account", field="email")
            profile_clash = await self.session.execute(
                select(Profile.id).where(Profile.email == new_email, Profile.id != profile.id)
            )
            if profile_clash.first() is not None:
                raise ConflictError("Email already in use by another account", field="email")

        new_contact = fields.get("contact_number")
        if new_contact is not None and new_contact != profile.contact_number:
            clash = await self.session.execute(
                select(Profile.id).where(
                    Profile.contact_number == new_contact,
                    Profile.id != profile.id,
                    Profile.is_active == ACCOUNT_ACTIVE,
                )
            )
            if clash.first() is not None:
                raise ConflictError(
                    "Contact number already in use by another account", field="contactNumber"
                )

        if fields.get("name") is not None:
            profile.full_name = fields["name"]
        if new_contact is not None:
            profile.contact_number = new_contact
        if "restaurant_name" in fields:
            profile.restaurant_name = fields["restaurant_name"]
        if new_email is not None and new_email != account.email:
            profile.email = new_email
            account.email = new_email

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise conflict_from_integrity_error(e) from e

        await self.session.refresh(profile)
        logger.info("Profile updated", extra={"account_id": str(account.id)})
        return account, profile

    # ------------------------------------------------------------------
    # Password / status
    # ------------------------------------------------------------------

    async def update_password(
        self,
        account_id: UUID,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        """Change the password with a compare-and-swap on the stored hash.

        The UPDATE only matches if the hash is still the one the current
        password was verified against, so two concurrent changes cannot
        interleave: the loser gets ConflictError and changes nothing.
        """
        if new_password != confirm_password:
            raise ValidationError("New password and confirm password do not match")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        account = await self._require_active_account(account_id)
        expected_hash = account.password_hash
        if not verify_password(current_password, expected_hash):
            raise InvalidCredentials("Current password is incorrect")

        swapped = await self._swap_password_hash(
            account.id, expected_hash, hash_password(new_password)
        )
        if not swapped:
            await self.session.rollback()
            raise ConflictError("Password was changed by another request. Please try again")

        await self.session.commit()
        logger.info("Password changed", extra={"account_id": str(account.id)})

    async def _swap_password_hash(
        self, account_id: UUID, expected_hash: str, new_hash: str
    ) -> bool:
        result = await self.session.execute(
            update(Account)
            .where(Account.id == account_id, Account.password_hash == expected_hash)
            .values(password_hash=new_hash)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def set_status(self, account_id: UUID, is_active: int) -> Account:
        """Set the tri-state active flag on both records. Never deletes."""
        if is_active not in (0, 1, 2):
            raise ValidationError("isActive must be 0, 1 or 2")
        account = await self._require_account(account_id)

        await self.session.execute(
            update(Profile)
            .where(Profile.email == account.email)
            .values(is_active=is_active)
            .execution_options(synchronize_session=False)
        )
        account.is_active = is_active
        await self.session.commit()
        logger.info(
            f"Account status set to {is_active}", extra={"account_id": str(account.id)}
        )
        return account

    async def deactivate(self, account_id: UUID) -> Account:
        return await self.set_status(account_id, ACCOUNT_DISABLED)

