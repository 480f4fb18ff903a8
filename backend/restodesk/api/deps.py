"""FastAPI dependencies shared by the routers."""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from restodesk.core import async_session_maker, get_db
from restodesk.core.exceptions import AccountInactive, NotFound, TokenInvalid
from restodesk.models.account import ACCOUNT_ACTIVE, Account
from restodesk.services.accounts import AccountService
from restodesk.services.otp import OtpService
from restodesk.services.restaurants import RestaurantService
from restodesk.services.revocation import RevocationLedger
from restodesk.services.tokens import TokenClaims, TokenService


@dataclass(frozen=True)
class BearerAuth:
    token: str
    claims: TokenClaims


@dataclass(frozen=True)
class CurrentAccount:
    token: str
    claims: TokenClaims
    account: Account


def get_revocation_ledger(request: Request) -> RevocationLedger:
    return request.app.state.revocation_ledger


def get_token_service(
    ledger: RevocationLedger = Depends(get_revocation_ledger),
) -> TokenService:
    return TokenService(ledger)


def get_otp_service(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> OtpService:
    return OtpService(
        store=request.app.state.otp_store,
        tokens=tokens,
        session_factory=async_session_maker,
        notifier=request.app.state.email_notifier,
    )


def get_account_service(db: AsyncSession = Depends(get_db)) -> AccountService:
    """Dependency to get account service."""
    return AccountService(db)


def get_restaurant_service(db: AsyncSession = Depends(get_db)) -> RestaurantService:
    return RestaurantService(db)


async def get_bearer_auth(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> BearerAuth:
    """Validate the ``Authorization: Bearer <token>`` header."""
    token, claims = await tokens.validate_header(request.headers.get("Authorization"))
    return BearerAuth(token=token, claims=claims)


async def get_token_account(
    auth: BearerAuth = Depends(get_bearer_auth),
    accounts: AccountService = Depends(get_account_service),
) -> CurrentAccount:
    """Resolve the bearer token to its account whatever the account status (401 / 404)."""
    try:
        account_id = UUID(auth.claims.account_id)
    except ValueError as e:
        raise TokenInvalid("Token carries an invalid user id") from e

    account = await accounts.get_account_by_id(account_id)
    if account is None:
        raise NotFound("User not found")
    return CurrentAccount(token=auth.token, claims=auth.claims, account=account)


async def get_current_account(
    current: CurrentAccount = Depends(get_token_account),
) -> CurrentAccount:
    """Resolve the bearer token to an active account (401 / 404 / 403)."""
    if current.account.is_active != ACCOUNT_ACTIVE:
        raise AccountInactive()
    return current
