"""Session token service: issue, decode and validate bearer JWTs.

Validation runs signature -> expiry -> revocation. A token that fails any
step is rejected with a TokenError subclass; expired and revoked are
terminal, re-presenting the token later never makes it valid again.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt

from restodesk.core.config import settings
from restodesk.core.exceptions import (
    TokenExpired,
    TokenFormatError,
    TokenInvalid,
    TokenMalformed,
    TokenMissing,
    TokenNotYetValid,
    TokenRevoked,
)

if TYPE_CHECKING:
    from restodesk.models.account import Account
    from restodesk.services.revocation import RevocationLedger

logger = logging.getLogger(__name__)

ACCESS_TOKEN_LIFETIME = timedelta(hours=1)
BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified claim set."""

    email: str
    account_id: str
    issued_at: datetime
    expires_at: datetime
    jti: str | None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        email = payload.get("email")
        account_id = payload.get("id") or payload.get("sub")
        if not email or not account_id:
            raise TokenInvalid("Token is missing required claims")
        return cls(
            email=email,
            account_id=str(account_id),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            jti=payload.get("jti"),
        )


def extract_bearer_token(authorization: str | None) -> str:
    """Pull the raw token out of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise TokenMissing()
    if not authorization.startswith(BEARER_PREFIX):
        raise TokenFormatError()
    token = authorization[len(BEARER_PREFIX) :]
    if not token.strip():
        raise TokenMissing("Access token is missing. Please provide a valid token")
    return token


def issue_token(account: "Account", now: datetime | None = None) -> str:
    """Sign a one-hour session token for an account."""
    issued_at = now or datetime.now(UTC)
    payload = {
        "email": account.email,
        "id": str(account.id),
        "sub": str(account.id),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ACCESS_TOKEN_LIFETIME).timestamp()),
        # Unique per issuance so two logins in the same second differ
        "jti": secrets.token_hex(16),
    }
    return str(jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm))


def decode_token(token: str) -> TokenClaims:
    """Verify signature and time claims, classifying every failure."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired() from e
    except jwt.ImmatureSignatureError as e:
        raise TokenNotYetValid() from e
    except jwt.DecodeError as e:
        # Includes InvalidSignatureError
        raise TokenMalformed() from e
    except jwt.PyJWTError as e:
        logger.debug(f"Token rejected: {e}")
        raise TokenInvalid() from e
    return TokenClaims.from_payload(payload)


class TokenService:
    """Issues tokens and validates them against the revocation ledger."""

    def __init__(self, ledger: "RevocationLedger"):
        self.ledger = ledger

    def issue(self, account: "Account", now: datetime | None = None) -> str:
        return issue_token(account, now)

    def decode(self, token: str) -> TokenClaims:
        return decode_token(token)

    async def validate(self, token: str) -> TokenClaims:
        """Return the claims of a token that is well-signed, unexpired and not revoked."""
        claims = decode_token(token)
        if await self.ledger.is_revoked(token):
            raise TokenRevoked()
        return claims

    async def validate_header(self, authorization: str | None) -> tuple[str, TokenClaims]:
        """Validate the token carried by an Authorization header."""
        token = extract_bearer_token(authorization)
        return token, await self.validate(token)
