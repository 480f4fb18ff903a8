"""Email OTP verification.

Codes live only in process memory: a restart drops every pending code and
users simply request a new one. Each email has at most one unconsumed code
at a time; issuing a new one replaces the old.
"""

import asyncio
import hmac
import logging
import math
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restodesk.core.config import settings
from restodesk.core.exceptions import (
    InvalidOtp,
    NotFound,
    OtpAttemptsExceeded,
    OtpExpired,
    OtpNotFound,
    RateLimited,
    ValidationError,
)
from restodesk.models.account import Account
from restodesk.models.profile import Profile
from restodesk.services.notifications import EmailNotifier, mask_email
from restodesk.services.tokens import TokenService

logger = logging.getLogger(__name__)

OTP_TTL_SECONDS = 300
OTP_MAX_ATTEMPTS = 3


def generate_otp() -> str:
    """Uniformly random six-digit code in 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class OtpRecord:
    email: str
    code: str
    expires_at: float
    attempts: int = 0


@dataclass(frozen=True)
class OtpDispatch:
    masked_email: str
    expires_in_seconds: int
    delivered: bool


@dataclass(frozen=True)
class OtpVerification:
    """Outcome of a successful code check.

    The code matched, so the email is verified regardless of whether both
    records could be updated; the persisted flags report which writes landed.
    """

    email: str
    account_persisted: bool
    profile_persisted: bool

    @property
    def fully_persisted(self) -> bool:
        return self.account_persisted and self.profile_persisted


class OtpStore:
    """Process-local OTP records keyed by email."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._records: dict[str, OtpRecord] = {}
        self._lock = threading.Lock()

    def get(self, email: str) -> OtpRecord | None:
        with self._lock:
            return self._records.get(email)

    def issue(self, email: str, code: str, cooldown_seconds: int) -> OtpRecord:
        """Store a fresh code unless one was issued within the cooldown window.

        The last issue time is derived from the stored expiry
        (``expires_at - OTP_TTL_SECONDS``) rather than tracked separately.
        """
        now = self.clock()
        with self._lock:
            existing = self._records.get(email)
            if existing is not None:
                last_issued_at = existing.expires_at - OTP_TTL_SECONDS
                elapsed = now - last_issued_at
                if elapsed < cooldown_seconds:
                    retry_after = max(1, math.ceil(cooldown_seconds - elapsed))
                    raise RateLimited(
                        f"Please wait {retry_after} seconds before requesting a new OTP",
                        data={"retryAfter": retry_after},
                    )
            record = OtpRecord(email=email, code=code, expires_at=now + OTP_TTL_SECONDS)
            self._records[email] = record
            return record

    def check(self, email: str, code: str) -> None:
        """Consume the code for an email or raise why it cannot be used."""
        now = self.clock()
        with self._lock:
            record = self._records.get(email)
            if record is None:
                raise OtpNotFound()
            if now > record.expires_at:
                del self._records[email]
                raise OtpExpired()
            if record.attempts >= OTP_MAX_ATTEMPTS:
                del self._records[email]
                raise OtpAttemptsExceeded()
            if not hmac.compare_digest(record.code, code.strip()):
                record.attempts += 1
                raise InvalidOtp(OTP_MAX_ATTEMPTS - record.attempts)
            del self._records[email]

    def discard(self, email: str) -> None:
        with self._lock:
            self._records.pop(email, None)

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [email for email, rec in self._records.items() if now > rec.expires_at]
            for email in expired:
                del self._records[email]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class OtpService:
    """Sends and checks email OTPs for the holder of a session token."""

    def __init__(
        self,
        store: OtpStore,
        tokens: TokenService,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: EmailNotifier | None = None,
    ):
        self.store = store
        self.tokens = tokens
        self._session_factory = session_factory
        self.notifier = notifier or EmailNotifier()

    async def send(self, token: str) -> OtpDispatch:
        return await self._issue(token, settings.otp_send_cooldown_seconds)

    async def resend(self, token: str) -> OtpDispatch:
        return await self._issue(token, settings.otp_resend_cooldown_seconds)

    async def _issue(self, token: str, cooldown_seconds: int) -> OtpDispatch:
        claims = await self.tokens.validate(token)
        email = claims.email

        async with self._session_factory() as session:
            result = await session.execute(
                select(Account.is_verified).where(Account.email == email)
            )
            is_verified = result.scalar_one_or_none()
        if is_verified is None:
            raise NotFound("Account not found")
        if is_verified:
            raise ValidationError("Email is already verified")

        record = self.store.issue(email, generate_otp(), cooldown_seconds)
        delivered = await self.notifier.send_otp(
            email, record.code, ttl_minutes=OTP_TTL_SECONDS // 60
        )
        logger.info(
            "OTP issued", extra={"email": mask_email(email), "delivered": delivered}
        )
        return OtpDispatch(
            masked_email=mask_email(email),
            expires_in_seconds=OTP_TTL_SECONDS,
            delivered=delivered,
        )

    async def verify(self, token: str, code: str) -> OtpVerification:
        claims = await self.tokens.validate(token)
        email = claims.email
        self.store.check(email, code)

        verified_at = datetime.now(UTC)
        account_ok, profile_ok = await asyncio.gather(
            self._mark_verified(Account, email, verified_at),
            self._mark_verified(Profile, email, verified_at),
        )
        outcome = OtpVerification(
            email=email, account_persisted=account_ok, profile_persisted=profile_ok
        )
        if not outcome.fully_persisted:
            logger.error(
                "Email verified but not fully persisted",
                extra={
                    "email": mask_email(email),
                    "account_persisted": account_ok,
                    "profile_persisted": profile_ok,
                },
            )
        else:
            logger.info("Email verified", extra={"email": mask_email(email)})
        return outcome

    async def _mark_verified(
        self, model: type[Account] | type[Profile], email: str, verified_at: datetime
    ) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(model)
                    .where(model.email == email)
                    .values(is_verified=True, verified_at=verified_at)
                )
                await session.commit()
                return (result.rowcount or 0) > 0
        except Exception:
            logger.exception(f"Failed to mark {model.__tablename__} verified")
            return False

    def purge_expired(self) -> int:
        return self.store.purge_expired()
