"""Restodesk Database Configuration - Async SQLAlchemy."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from restodesk.core.config import settings
from restodesk.core.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)


def _engine_options() -> dict[str, Any]:
    """Pool options for the configured backend.

    SQLite connections are cheap and must not be shared across event loops,
    so they are opened per checkout instead of pooled.
    """
    if settings.is_sqlite:
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug and settings.log_level == "DEBUG",
    **_engine_options(),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()

# Connection bootstrap state. Only one attempt runs at a time; concurrent
# callers await the in-flight task.
_ready = False
_bootstrap_task: asyncio.Task | None = None

DB_RETRY_CONFIG = RetryConfig(
    max_retries=settings.db_connect_max_retries - 1,
    base_delay=settings.db_connect_base_delay,
    exponential_base=2.0,
    jitter=False,
    retryable_exceptions=(
        OperationalError,
        InterfaceError,
        ConnectionError,
        TimeoutError,
        OSError,
    ),
)


async def _connect_once() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if settings.auto_create_tables:
            # Registers every model on Base.metadata
            import restodesk.models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)


async def _bootstrap() -> None:
    global _ready
    await retry_async(_connect_once, config=DB_RETRY_CONFIG)
    _ready = True
    logger.info("Database connection established")


async def ensure_database() -> None:
    """Establish the shared database connection, retrying with backoff.

    Safe to call from many in-flight requests: once connected this returns
    immediately, and while an attempt is running every caller awaits that
    same attempt rather than starting a second one.
    """
    global _bootstrap_task
    if _ready:
        return
    if _bootstrap_task is None or _bootstrap_task.done():
        _bootstrap_task = asyncio.create_task(_bootstrap())
    try:
        await asyncio.shield(_bootstrap_task)
    except Exception:
        logger.error("All database connection attempts failed")
        raise


def reset_database_state() -> None:
    """Forget the bootstrap result so the next call reconnects."""
    global _ready, _bootstrap_task
    _ready = False
    _bootstrap_task = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    await ensure_database()
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (Exception, BaseException):
            # BaseException covers asyncio.CancelledError
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_db_connection() -> bool:
    """Check if database is reachable."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            return True
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error checking database connection: {e}")
        return False
