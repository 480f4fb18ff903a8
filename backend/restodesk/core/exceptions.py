"""Domain error taxonomy.

Every error carries the HTTP status it maps to; the handlers in
``restodesk.main`` turn them into the response envelope.
"""

import re
from typing import Any

from sqlalchemy.exc import IntegrityError


class RestodeskError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, data: Any = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(RestodeskError):
    status_code = 400
    default_message = "Validation failed"


class ConflictError(RestodeskError):
    status_code = 409
    default_message = "Resource already exists"

    def __init__(self, message: str | None = None, field: str | None = None, data: Any = None):
        self.field = field
        if data is None and field is not None:
            data = {"field": field}
        super().__init__(message, data)


class InvalidCredentials(RestodeskError):
    status_code = 400
    default_message = "Invalid credentials"


class AccountInactive(RestodeskError):
    status_code = 403
    default_message = "Account is inactive"


class AccountNotVerified(RestodeskError):
    status_code = 403
    default_message = "Account not verified"


class NotFound(RestodeskError):
    status_code = 404
    default_message = "Resource not found"


class RateLimited(RestodeskError):
    status_code = 429
    default_message = "Too many requests. Please try again later"


class Internal(RestodeskError):
    status_code = 500


# --- Token errors (all 401, distinct messages) ---


class TokenError(RestodeskError):
    status_code = 401
    default_message = "Token verification failed. Please login again"


class TokenMissing(TokenError):
    default_message = "Access token is missing. Please provide a valid authorization header"


class TokenFormatError(TokenError):
    default_message = "Invalid token format. Token must be in format 'Bearer <token>'"


class TokenExpired(TokenError):
    default_message = "Token has expired. Please login again to get a new token"


class TokenMalformed(TokenError):
    default_message = "Invalid token. Please provide a valid authentication token"


class TokenNotYetValid(TokenError):
    default_message = "Token is not active yet. Please try again later"


class TokenInvalid(TokenError):
    default_message = "Token verification failed. Please login again"


class TokenRevoked(TokenError):
    default_message = "Token has been revoked. Please login again"


# --- OTP errors ---


class OtpNotFound(NotFound):
    default_message = "No OTP found for this email. Please request a new OTP"


class OtpExpired(ValidationError):
    default_message = "OTP has expired. Please request a new OTP"


class OtpAttemptsExceeded(ValidationError):
    default_message = "Maximum verification attempts exceeded. Please request a new OTP"


class InvalidOtp(ValidationError):
    default_message = "Invalid OTP"

    def __init__(self, remaining_attempts: int):
        self.remaining_attempts = remaining_attempts
        super().__init__(
            f"Invalid OTP. {remaining_attempts} attempt(s) remaining",
            data={"remainingAttempts": remaining_attempts},
        )


# --- Integrity error classification ---

# PostgreSQL: Key (email)=(a@x.com) already exists.
_PG_KEY_RE = re.compile(r"Key \((?P<field>[^)]+)\)=")
# SQLite: UNIQUE constraint failed: profiles.email
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")

_FIELD_NAMES = {
    "email": "email",
    "contact_number": "contactNumber",
    "token": "token",
    "restaurant_id": "restaurant",
}


def conflict_from_integrity_error(exc: IntegrityError) -> ConflictError:
    """Reclassify a duplicate-key violation as a ConflictError naming the field."""
    text = str(exc.orig) if exc.orig is not None else str(exc)

    column: str | None = None
    match = _PG_KEY_RE.search(text)
    if match:
        column = match.group("field").split(",")[0].strip()
    else:
        match = _SQLITE_UNIQUE_RE.search(text)
        if match:
            first = match.group("columns").split(",")[0].strip()
            column = first.rsplit(".", 1)[-1]

    if column is None:
        return ConflictError("Duplicate value violates a uniqueness constraint")

    field = _FIELD_NAMES.get(column, column)
    return ConflictError(f"{field} already exists", field=field)
