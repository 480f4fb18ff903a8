"""Restodesk Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from restodesk.api import api_router, auth_router, health_router
from restodesk.core import async_session_maker, ensure_database, settings, setup_logging
from restodesk.core.exceptions import RestodeskError
from restodesk.core.logging import get_logger
from restodesk.core.responses import error_response, success_response
from restodesk.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, get_rate_limiter
from restodesk.services import EmailNotifier, OtpStore, RevocationLedger

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def run_expiry_sweep(app: FastAPI) -> dict[str, int]:
    """Drop expired revocation entries, OTP records and idle rate-limit buckets."""
    ledger: RevocationLedger = app.state.revocation_ledger
    otp_store: OtpStore = app.state.otp_store

    removed = {
        "revocations": await ledger.purge_expired(),
        "otps": otp_store.purge_expired(),
        "rate_limit_buckets": await get_rate_limiter().cleanup_inactive_buckets(),
    }
    if any(removed.values()):
        logger.info("Expiry sweep", extra=removed)
    return removed


async def _expiry_sweep_loop(app: FastAPI) -> None:
    while True:
        await asyncio.sleep(settings.revocation_sweep_interval_seconds)
        try:
            await run_expiry_sweep(app)
        except Exception:
            logger.exception("Error during expiry sweep")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    try:
        await ensure_database()
    except Exception:
        # Requests retry the bootstrap on their own session acquisition
        logger.exception("Database unavailable at startup")

    sweep_task = asyncio.create_task(_expiry_sweep_loop(app), name="expiry-sweep")
    sweep_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass

    app.state.otp_store.clear()
    app.state.revocation_ledger.clear()


def register_exception_handlers(app: FastAPI) -> None:
    """Translate errors into the standard response envelope."""

    @app.exception_handler(RestodeskError)
    async def restodesk_error_handler(request: Request, exc: RestodeskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                exc.message, extra={"method": request.method, "path": request.url.path}
            )
        return error_response(exc.message, exc.status_code, exc.data)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in err["loc"] if loc != "body"),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return error_response("Validation failed", status.HTTP_400_BAD_REQUEST, {"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(str(exc.detail), exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error", extra={"method": request.method, "path": request.url.path}
        )
        return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Restaurant management backend: accounts, sessions and email verification",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Process-wide state, shared by every request of this worker
    app.state.revocation_ledger = RevocationLedger(async_session_maker)
    app.state.otp_store = OtpStore()
    app.state.email_notifier = EmailNotifier()

    register_exception_handlers(app)

    app.add_middleware(SecurityHeadersMiddleware, hsts_max_age=settings.hsts_max_age_seconds)

    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.rate_limit_requests_per_minute,
        exclude_paths=["/health", "/auth/otp-service/health"],
        enabled=settings.rate_limit_enabled,
    )

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)
    app.include_router(auth_router)  # Auth at root level (/auth)
    app.include_router(api_router)  # API at /api

    @app.get("/")
    async def root() -> JSONResponse:
        """Root endpoint with API information."""
        return success_response(
            {"name": settings.app_name, "version": settings.app_version},
            f"{settings.app_name} API is running",
        )

    return app


# Application instance
app = create_app()
