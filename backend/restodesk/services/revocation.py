"""Revocation ledger: tokens invalidated before their natural expiry.

The database table is the source of truth and survives restarts. An
in-memory map (token -> expiry timestamp) sits in front of it so the common
"is this token revoked?" check on every request needs no round-trip; a miss
falls through to the table and repopulates the map on a hit.
"""

import logging
import threading
import time
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restodesk.models.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)

ALL_DEVICES_PREFIX = "all-devices"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class RevocationLedger:
    """Write-through cache of revoked tokens backed by ``token_blacklist``.

    One instance is owned by the application (``app.state``) for its whole
    lifetime and injected into request handlers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._revoked: dict[str, float] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # In-memory cache
    # ------------------------------------------------------------------

    def _remember(self, token: str, expires_at: datetime) -> None:
        with self._lock:
            self._revoked[token] = _as_utc(expires_at).timestamp()

    def _cached(self, token: str) -> bool:
        with self._lock:
            exp = self._revoked.get(token)
            if exp is None:
                return False
            if time.time() > exp:
                # The token itself has expired; keeping it buys nothing
                del self._revoked[token]
                return False
            return True

    def evict_expired(self) -> int:
        """Drop cache entries whose tokens have expired. Returns count removed."""
        now = time.time()
        with self._lock:
            expired = [token for token, exp in self._revoked.items() if now > exp]
            for token in expired:
                del self._revoked[token]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._revoked.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)

    # ------------------------------------------------------------------
    # Ledger operations
    # ------------------------------------------------------------------

    async def revoke(self, token: str, email: str, expires_at: datetime) -> None:
        """Blacklist a token until it expires.

        Idempotent: revoking an already-revoked token (for example two
        concurrent logouts with the same token) is not an error.
        """
        self._remember(token, expires_at)
        async with self._session_factory() as session:
            session.add(TokenBlacklist(token=token, email=email, expires_at=_as_utc(expires_at)))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.debug(f"Token for {email} was already revoked")

    async def is_revoked(self, token: str) -> bool:
        """True if the token is in the cache or the durable table."""
        if self._cached(token):
            return True

        async with self._session_factory() as session:
            result = await session.execute(
                select(TokenBlacklist.expires_at).where(TokenBlacklist.token == token)
            )
            expires_at = result.scalar_one_or_none()

        if expires_at is None:
            return False
        self._remember(token, expires_at)
        return True

    async def revoke_all(self, email: str, current_token: str, expires_at: datetime) -> str:
        """Log out "all devices" for an account.

        Revokes the caller's token and records a sentinel entry keyed by the
        email. Other still-valid tokens that were never individually revoked
        are NOT invalidated: validation checks exact-token membership and
        issued tokens are not enumerable. Returns the sentinel key.
        """
        await self.revoke(current_token, email, expires_at)

        sentinel = f"{ALL_DEVICES_PREFIX}:{email}:{time.time_ns()}"
        async with self._session_factory() as session:
            session.add(
                TokenBlacklist(token=sentinel, email=email, expires_at=_as_utc(expires_at))
            )
            await session.commit()

        logger.info(f"All-devices logout recorded for {email}")
        return sentinel

    async def purge_expired(self) -> int:
        """Delete durable entries past their expiry and evict stale cache entries.

        Returns the number of durable rows removed.
        """
        self.evict_expired()
        now = datetime.now(tz=UTC)
        async with self._session_factory() as session:
            result: CursorResult[Any] = await session.execute(  # type: ignore[assignment]
                delete(TokenBlacklist).where(TokenBlacklist.expires_at < now)
            )
            await session.commit()
        return result.rowcount or 0
