"""Rate limiting middleware for API protection."""

import asyncio
import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from restodesk.core.request_utils import get_client_ip
from restodesk.core.responses import error_response

logger = logging.getLogger(__name__)


@dataclass
class PathRateLimitConfig:
    """Configuration for rate limiting a specific path pattern."""

    requests_per_minute: int = 60
    burst_size: int = 10


@dataclass
class RateLimitBucket:
    """Rate limit tracking for a single client+path combination."""

    tokens: float = 10.0
    last_update: float = field(default_factory=time.monotonic)
    minute_requests: list[float] = field(default_factory=list)


class RateLimiter:
    """In-memory per-IP rate limiter with per-path configuration.

    Counters live in process memory, so limits apply per worker.
    """

    _instance: Optional["RateLimiter"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(self, default_requests_per_minute: int = 100) -> None:
        self._buckets: dict[str, RateLimitBucket] = defaultdict(RateLimitBucket)
        self._lock = asyncio.Lock()

        # Credential and OTP endpoints get tight buckets to slow guessing
        self._path_configs: dict[str, PathRateLimitConfig] = {
            "/auth/login": PathRateLimitConfig(requests_per_minute=10, burst_size=5),
            "/auth/register": PathRateLimitConfig(requests_per_minute=10, burst_size=5),
            "/auth/send-email-otp": PathRateLimitConfig(requests_per_minute=5, burst_size=3),
            "/auth/resend-email-otp": PathRateLimitConfig(requests_per_minute=5, burst_size=3),
            "/auth/verify-email-otp": PathRateLimitConfig(requests_per_minute=10, burst_size=5),
        }

        self._default_config = PathRateLimitConfig(
            requests_per_minute=default_requests_per_minute,
            burst_size=20,
        )

    @classmethod
    def get_instance(cls) -> "RateLimiter":
        """Get the singleton instance (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def set_default_rate(self, requests_per_minute: int) -> None:
        self._default_config = PathRateLimitConfig(
            requests_per_minute=requests_per_minute,
            burst_size=self._default_config.burst_size,
        )

    def get_config_for_path(self, path: str) -> PathRateLimitConfig:
        for prefix, config in self._path_configs.items():
            if path.startswith(prefix):
                return config
        return self._default_config

    def _get_bucket_key(self, client_ip: str, path: str) -> str:
        for prefix in self._path_configs:
            if path.startswith(prefix):
                return f"{client_ip}:{prefix}"
        return f"{client_ip}:default"

    async def check_rate_limit(self, client_ip: str, path: str) -> tuple[bool, dict[str, str]]:
        """Check if request is allowed.

        Returns:
            Tuple of (is_allowed, headers_dict)
        """
        config = self.get_config_for_path(path)
        bucket_key = self._get_bucket_key(client_ip, path)

        async with self._lock:
            bucket = self._buckets[bucket_key]
            now = time.monotonic()

            bucket.minute_requests = [ts for ts in bucket.minute_requests if ts > now - 60]
            minute_remaining = config.requests_per_minute - len(bucket.minute_requests)

            headers = {
                "X-RateLimit-Limit": str(config.requests_per_minute),
                "X-RateLimit-Remaining": str(max(0, minute_remaining - 1)),
            }

            if minute_remaining <= 0:
                oldest = min(bucket.minute_requests) if bucket.minute_requests else now
                reset_seconds = max(1, int(60 - (now - oldest)))
                headers["Retry-After"] = str(reset_seconds)
                headers["X-RateLimit-Reset"] = str(reset_seconds)
                return False, headers

            # Token bucket for burst control
            elapsed = now - bucket.last_update
            refill_rate = config.requests_per_minute / 60.0
            bucket.tokens = min(config.burst_size, bucket.tokens + elapsed * refill_rate)
            bucket.last_update = now

            if bucket.tokens < 1.0:
                headers["Retry-After"] = "1"
                return False, headers

            bucket.tokens -= 1.0
            bucket.minute_requests.append(now)
            return True, headers

    async def reset(self, client_ip: str | None = None) -> None:
        """Reset rate limit counters."""
        async with self._lock:
            if client_ip:
                for key in [k for k in self._buckets if k.startswith(f"{client_ip}:")]:
                    del self._buckets[key]
            else:
                self._buckets.clear()

    async def cleanup_inactive_buckets(self, inactive_seconds: int = 3600) -> int:
        """Remove buckets untouched for ``inactive_seconds``.

        Returns:
            Number of buckets removed
        """
        async with self._lock:
            cutoff = time.monotonic() - inactive_seconds
            stale = [
                key
                for key, bucket in self._buckets.items()
                if bucket.last_update < cutoff
                and all(ts < cutoff for ts in bucket.minute_requests)
            ]
            for key in stale:
                del self._buckets[key]
            return len(stale)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP rate limiting with stricter buckets for credential endpoints."""

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 100,
        exclude_paths: list[str] | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/docs", "/redoc", "/openapi.json"]
        self.enabled = enabled
        self.rate_limiter = RateLimiter.get_instance()
        self.rate_limiter.set_default_rate(requests_per_minute)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.enabled:
            return await call_next(request)

        path = request.url.path
        if any(path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        client_ip = get_client_ip(request)
        is_allowed, headers = await self.rate_limiter.check_rate_limit(client_ip, path)

        if not is_allowed:
            logger.warning("Rate limit exceeded", extra={"client_ip": client_ip, "path": path})
            return error_response(
                "Too many requests. Please try again later.",
                status.HTTP_429_TOO_MANY_REQUESTS,
                {"retryAfter": int(headers.get("Retry-After", 60))},
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            if not key.startswith("Retry"):
                response.headers[key] = value
        return response


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter singleton for stats/management."""
    return RateLimiter.get_instance()
