"""
HTTP hardening for the API: security response headers and login rate limiting.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from healthvibe.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Security Headers
# =============================================================================

DEFAULT_SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; base-uri 'self'; frame-ancestors 'self'; "
        "object-src 'none'; img-src 'self' data:"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add a fixed set of security headers to every response."""

    def __init__(self, app, headers: dict[str, str] | None = None):
        super().__init__(app)
        self.headers = dict(DEFAULT_SECURITY_HEADERS if headers is None else headers)

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.headers.items():
            # Leave headers a route set explicitly
            response.headers.setdefault(name, value)
        return response


# =============================================================================
# Rate Limiting
# =============================================================================


def create_login_limiter() -> Limiter:
    """
    A limiter keyed on client address.

    Each app gets its own limiter so counters never leak between apps.
    """
    return Limiter(key_func=get_remote_address)


def rate_limit_handler(settings: Settings):
    """Build the 429 handler that answers with the configured message."""

    async def handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.warning(
            f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}"
        )
        return JSONResponse(
            status_code=429,
            content={"detail": settings.login_rate_limit_message},
        )

    return handler
