"""Pytest configuration and fixtures for backend tests.

Tests run against a throwaway SQLite database (aiosqlite). Tables are
recreated for every test and the process-wide in-memory stores attached to
the application are reset, so tests never see each other's state.
"""

import os
import tempfile
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app modules
_tmpdir = tempfile.mkdtemp(prefix="restodesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmpdir}/test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret-Kq8Zr2Lm5Nx7Vb4Tc9Wd1Hf6Jg3Ps0Y"
os.environ["OTP_WEBHOOK_URL"] = ""
os.environ["RATE_LIMIT_REQUESTS_PER_MINUTE"] = "10000"

TEST_PASSWORD = "Secret123"


class FakeClock:
    """Manually advanced clock for OTP expiry and cooldown tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _reset_rate_limiter_state():
    """Clear buckets on the singleton the middleware already holds."""
    from restodesk.middleware.rate_limit import RateLimiter

    RateLimiter.get_instance()._buckets.clear()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture(autouse=True)
async def reset_state(fake_clock):
    """Fresh tables and empty in-memory stores for every test."""
    import restodesk.models  # noqa: F401
    from restodesk.core.database import Base, engine, ensure_database, reset_database_state
    from restodesk.main import app
    from restodesk.services.otp import OtpStore

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    reset_database_state()
    await ensure_database()

    app.state.revocation_ledger.clear()
    app.state.otp_store = OtpStore(clock=fake_clock)
    _reset_rate_limiter_state()

    yield

    app.state.revocation_ledger.clear()
    _reset_rate_limiter_state()


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async test client talking to the app in-process."""
    from restodesk.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def registration_payload() -> dict[str, Any]:
    return {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "contactNumber": "+15550001111",
        "password": TEST_PASSWORD,
        "restaurantName": "Analytical Eats",
    }


@pytest_asyncio.fixture
async def registered_user(async_client, registration_payload) -> dict[str, Any]:
    """Register an account through the API and return the response data."""
    response = await async_client.post("/auth/register", json=registration_payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest_asyncio.fixture
async def auth_token(async_client, registered_user, registration_payload) -> str:
    response = await async_client.post(
        "/auth/login",
        json={"email": registration_payload["email"], "password": TEST_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["token"]


@pytest.fixture
def auth_headers(auth_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def session_factory():
    from restodesk.core.database import async_session_maker

    return async_session_maker
