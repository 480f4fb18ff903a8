"""Pydantic schemas for the authentication API."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, ConfigDict, Field

from restodesk.schemas.base import CamelModel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(CamelModel):
    """Request for account registration."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("name", "fullName"),
    )
    email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN)
    contact_number: str = Field(..., min_length=1, max_length=32)
    password: str = Field(..., min_length=1, max_length=128)
    restaurant_name: str | None = Field(default=None, max_length=255)


class LoginRequest(CamelModel):
    """Request for login."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class OtpTokenRequest(CamelModel):
    """Body for send/resend OTP: the session token whose email receives the code."""

    token: str = Field(..., min_length=1)


class VerifyOtpRequest(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    token: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1, max_length=12)


class UpdateProfileRequest(CamelModel):
    """Partial profile update - omitted fields are left unchanged."""

    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("name", "fullName"),
    )
    email: str | None = Field(default=None, max_length=320, pattern=EMAIL_PATTERN)
    contact_number: str | None = Field(default=None, min_length=1, max_length=32)
    restaurant_name: str | None = Field(default=None, max_length=255)


class UpdatePasswordRequest(CamelModel):
    """Request for password change."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., max_length=128)
    confirm_password: str = Field(..., max_length=128)


class UpdateStatusRequest(CamelModel):
    """0 = disabled, 1 = active, 2 = auto-disabled."""

    is_active: Literal[0, 1, 2]


# --- Responses ---


class AccountView(CamelModel):
    """Redacted identity view (never includes the password hash)."""

    id: UUID
    email: str
    is_verified: bool
    is_active: int
    is_setup: bool
    restaurant_id: UUID | None = None


class ProfileView(CamelModel):
    id: UUID
    full_name: str
    email: str
    contact_number: str
    restaurant_name: str | None = None
    is_verified: bool
    is_active: int
    created_at: datetime | None = None


class UserProfileView(ProfileView):
    """Profile merged with the identity flags."""

    login_id: UUID
    is_setup: bool
    restaurant_id: UUID | None = None
    last_login_at: datetime | None = None


class RegisterResult(CamelModel):
    user: ProfileView
    login_id: UUID


class LoginResult(CamelModel):
    token: str
    user: AccountView


class OtpSentView(CamelModel):
    email: str
    expires_in_seconds: int


class OtpPersistence(CamelModel):
    account: bool
    profile: bool


class OtpVerifiedView(CamelModel):
    email: str
    verified: bool
    persisted: OtpPersistence


class LogoutStatusView(CamelModel):
    is_logged_out: bool
