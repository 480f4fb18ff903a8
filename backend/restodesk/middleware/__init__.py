"""HTTP middleware for the Restodesk API."""

from restodesk.middleware.rate_limit import RateLimitMiddleware, get_rate_limiter
from restodesk.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "get_rate_limiter",
]
