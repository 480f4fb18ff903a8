"""Authentication API endpoints."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from restodesk.api.deps import (
    CurrentAccount,
    get_account_service,
    get_current_account,
    get_otp_service,
    get_revocation_ledger,
    get_token_account,
    get_token_service,
)
from restodesk.core.exceptions import TokenError
from restodesk.core.responses import success_response
from restodesk.models.account import Account
from restodesk.models.profile import Profile
from restodesk.schemas.auth import (
    AccountView,
    LoginRequest,
    LoginResult,
    LogoutStatusView,
    OtpPersistence,
    OtpSentView,
    OtpTokenRequest,
    OtpVerifiedView,
    ProfileView,
    RegisterRequest,
    RegisterResult,
    UpdatePasswordRequest,
    UpdateProfileRequest,
    UpdateStatusRequest,
    UserProfileView,
    VerifyOtpRequest,
)
from restodesk.services.accounts import AccountService
from restodesk.services.otp import OtpService
from restodesk.services.revocation import RevocationLedger
from restodesk.services.tokens import TokenService, extract_bearer_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_profile_view(account: Account, profile: Profile) -> UserProfileView:
    return UserProfileView(
        id=profile.id,
        full_name=profile.full_name,
        email=profile.email,
        contact_number=profile.contact_number,
        restaurant_name=profile.restaurant_name,
        is_verified=account.is_verified,
        is_active=account.is_active,
        created_at=profile.created_at,
        login_id=account.id,
        is_setup=account.is_setup,
        restaurant_id=account.restaurant_id,
        last_login_at=account.last_login_at,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Register a new restaurant owner account.

    Returns 409 if the email is already registered.
    """
    registration = await accounts.register(
        name=request.name,
        email=request.email,
        contact_number=request.contact_number,
        password=request.password,
        restaurant_name=request.restaurant_name,
    )
    result = RegisterResult(
        user=ProfileView.model_validate(registration.profile),
        login_id=registration.account.id,
    )
    return success_response(result, "User registered successfully", status.HTTP_201_CREATED)


@router.post("/login")
async def login(
    request: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Authenticate and get a one-hour session token."""
    session = await accounts.login(request.email, request.password)
    result = LoginResult(token=session.token, user=AccountView.model_validate(session.account))
    return success_response(result, "Login successful")


@router.get("/verify")
async def verify_user(
    current: CurrentAccount = Depends(get_current_account),
) -> JSONResponse:
    """Return the account behind a valid token."""
    return success_response(AccountView.model_validate(current.account), "Token is valid")


# --- Email OTP ---


@router.post("/send-email-otp")
async def send_email_otp(
    request: OtpTokenRequest,
    otp: OtpService = Depends(get_otp_service),
) -> JSONResponse:
    dispatch = await otp.send(request.token)
    return success_response(
        OtpSentView(email=dispatch.masked_email, expires_in_seconds=dispatch.expires_in_seconds),
        f"OTP sent to {dispatch.masked_email}",
    )


@router.post("/verify-email-otp")
async def verify_email_otp(
    request: VerifyOtpRequest,
    otp: OtpService = Depends(get_otp_service),
) -> JSONResponse:
    """Check the code and mark the account and profile verified."""
    outcome = await otp.verify(request.token, request.otp)
    view = OtpVerifiedView(
        email=outcome.email,
        verified=True,
        persisted=OtpPersistence(
            account=outcome.account_persisted, profile=outcome.profile_persisted
        ),
    )
    message = (
        "Email verified successfully"
        if outcome.fully_persisted
        else "Email verified, but the account status could not be fully updated"
    )
    return success_response(view, message)


@router.post("/resend-email-otp")
async def resend_email_otp(
    request: OtpTokenRequest,
    otp: OtpService = Depends(get_otp_service),
) -> JSONResponse:
    dispatch = await otp.resend(request.token)
    return success_response(
        OtpSentView(email=dispatch.masked_email, expires_in_seconds=dispatch.expires_in_seconds),
        f"OTP resent to {dispatch.masked_email}",
    )


@router.get("/otp-service/health")
async def otp_service_health() -> JSONResponse:
    return success_response(
        {"timestamp": datetime.now(UTC).isoformat()},
        "OTP service is running",
    )


# --- Logout ---


@router.post("/logout")
async def logout(
    current: CurrentAccount = Depends(get_current_account),
    ledger: RevocationLedger = Depends(get_revocation_ledger),
) -> JSONResponse:
    """Revoke the presented token for the remainder of its lifetime."""
    await ledger.revoke(current.token, current.claims.email, current.claims.expires_at)
    logger.info("User logged out", extra={"account_id": current.claims.account_id})
    return success_response(None, "Logged out successfully")


@router.post("/logout-all-devices")
async def logout_all_devices(
    current: CurrentAccount = Depends(get_current_account),
    ledger: RevocationLedger = Depends(get_revocation_ledger),
) -> JSONResponse:
    """Revoke the current token and record an all-devices logout for the account."""
    await ledger.revoke_all(current.claims.email, current.token, current.claims.expires_at)
    return success_response(None, "Logged out from all devices")


@router.get("/logout-status")
async def logout_status(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> JSONResponse:
    """Report whether the presented token can no longer be used.

    Revoked, expired and otherwise invalid tokens all count as logged out;
    only a missing or malformed header is an error.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        await tokens.validate(token)
        is_logged_out = False
    except TokenError:
        is_logged_out = True
    return success_response(LogoutStatusView(is_logged_out=is_logged_out), "Logout status")


# --- Profile management ---


@router.get("/getuserprofile")
async def get_user_profile(
    current: CurrentAccount = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    account, profile = await accounts.get_profile(current.account.id)
    return success_response(_user_profile_view(account, profile), "User profile fetched")


@router.put("/updateuserprofile")
async def update_user_profile(
    request: UpdateProfileRequest,
    current: CurrentAccount = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    fields = request.model_dump(exclude_unset=True)
    account, profile = await accounts.update_profile(current.account.id, fields)
    return success_response(_user_profile_view(account, profile), "Profile updated successfully")


@router.put("/updateuserpassword")
async def update_user_password(
    request: UpdatePasswordRequest,
    current: CurrentAccount = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    await accounts.update_password(
        current.account.id,
        current_password=request.current_password,
        new_password=request.new_password,
        confirm_password=request.confirm_password,
    )
    return success_response(None, "Password updated successfully")


@router.put("/updateuserstatus")
async def update_user_status(
    request: UpdateStatusRequest,
    current: CurrentAccount = Depends(get_token_account),
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Change the account status.

    Inactive accounts may still call this with a live token, so a disabled
    account can be switched back on before its token expires.
    """
    account = await accounts.set_status(current.account.id, request.is_active)
    return success_response(AccountView.model_validate(account), "User status updated")
