"""Response headers for a JSON API that hands out session tokens."""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from restodesk.core.request_utils import is_https_request

# Responses under these prefixes can carry tokens or personal data
NO_STORE_PREFIXES = ("/auth", "/api")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add anti-sniffing, framing, caching and HSTS headers."""

    def __init__(self, app: ASGIApp, hsts_max_age: int = 31536000) -> None:
        super().__init__(app)
        self.hsts_max_age = hsts_max_age

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers.setdefault("Cache-Control", "no-store")

        if self.hsts_max_age and is_https_request(request):
            response.headers["Strict-Transport-Security"] = f"max-age={self.hsts_max_age}"

        return response
