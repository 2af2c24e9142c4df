"""
FastAPI application for the HealthVibe identity service.

This is the HTTP API that the web frontend talks to for accounts and sessions.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel
from slowapi.errors import RateLimitExceeded

from healthvibe import __version__
from healthvibe.api.security import (
    SecurityHeadersMiddleware,
    create_login_limiter,
    rate_limit_handler,
)
from healthvibe.auth.errors import MailDeliveryError, StorageError
from healthvibe.auth.routes import create_auth_router
from healthvibe.auth.services import AuthServices
from healthvibe.config import Settings, get_settings
from healthvibe.integrations.email import EmailService
from healthvibe.integrations.sentry import capture_exception, init_sentry
from healthvibe.storage import UserStore, create_local_storage

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop app-wide integrations."""
    settings: Settings = app.state.settings

    # Initialize error tracking (Sentry)
    if init_sentry(settings):
        logger.info("Sentry error tracking enabled")

    logger.info(f"HealthVibe API starting in {settings.environment} mode")

    yield

    logger.info("HealthVibe API shutting down")


# =============================================================================
# Exception Handlers
# =============================================================================


def _request_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Field/message pairs for a request that failed schema validation."""
    errors = []
    for err in exc.errors():
        loc = [part for part in err.get("loc", ()) if part not in ("body", "path", "query")]
        field = to_camel(str(loc[0])) if loc else "body"
        message = "Field is required." if err.get("type") == "missing" else err.get("msg", "Invalid value.")
        errors.append({"field": field, "message": message})
    return errors


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": _request_errors(exc)})


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    capture_exception(exc, path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR})


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    settings: Settings | None = None,
    store: UserStore | None = None,
    mailer: EmailService | None = None,
) -> FastAPI:
    """
    Build the API.

    Storage and the mailer can be swapped in (tests pass in-memory fakes);
    by default the in-memory store and the SES mailer are used.
    """
    settings = settings or get_settings()
    store = store or create_local_storage()
    mailer = mailer or EmailService(settings)

    app = FastAPI(
        title="HealthVibe API",
        description="Accounts, sessions and access control for HealthVibe",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.auth = AuthServices.build(settings, store, mailer)

    limiter = create_login_limiter()
    app.state.limiter = limiter

    # Middleware (last added runs first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} from {request.headers.get('host', '-')} "
            f"-> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        return response

    # Errors
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler(settings))
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StorageError, internal_error_handler)
    app.add_exception_handler(MailDeliveryError, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # Routes
    app.include_router(create_auth_router(limiter, settings.login_rate_limit))

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "healthvibe-api"}

    return app
