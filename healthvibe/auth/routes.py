# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /register                - Create account, returns a session token
#   POST /login                   - Password (+ 2FA code), sets session cookie
#   POST /logout                  - Revoke the presented session
#   GET  /me                      - Current user profile
#   POST /enable-2fa              - Provision TOTP secret + QR code
#   POST /disable-2fa             - Turn TOTP off
#   POST /forgot-password         - Email a reset link
#   POST /reset-password/{token}  - Set a new password with a reset token
#
# Role-gated:
#   GET  /admin-dashboard         - admins
#   GET  /trainer-dashboard       - trainers
#
# The router is built per app by create_auth_router() so the login rate
# limiter is the one configured for that app.
#
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from slowapi import Limiter

from healthvibe.auth.context import AuthContext
from healthvibe.auth.errors import (
    AuthError,
    TokenError,
    UserNotFound,
    ValidationFailed,
)
from healthvibe.auth.models import Address, UserResponse
from healthvibe.auth.policies import get_services, require_auth, require_roles
from healthvibe.auth.roles import ADMIN_ONLY, TRAINER_ONLY
from healthvibe.auth.services import AuthServices
from healthvibe.auth.two_factor import TwoFactorSetup

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent."


# =============================================================================
# Request/Response Models
# =============================================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    # Defaults keep absent fields flowing into field-level validation
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""
    address: Address | None = None


class RegisterResponse(CamelModel):
    user: UserResponse
    token: str


class LoginRequest(CamelModel):
    email_or_phone: str = ""
    password: str = ""
    two_factor_token: str | None = None

    @field_validator("two_factor_token", mode="before")
    @classmethod
    def _code_as_text(cls, value):
        # The code may arrive as a JSON number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class LoginResponse(CamelModel):
    message: str | None = None
    user: UserResponse | None = None


class TwoFactorSetupResponse(TwoFactorSetup):
    message: str = "Two-factor authentication setup complete."


class ForgotPasswordRequest(CamelModel):
    email: str = ""


class ResetPasswordRequest(CamelModel):
    password: str = ""


class MessageResponse(CamelModel):
    message: str


def _http_error(error: AuthError) -> HTTPException:
    if isinstance(error, ValidationFailed):
        return HTTPException(status_code=400, detail=error.errors)
    return HTTPException(status_code=error.status_code, detail=error.detail)


def _check_login_fields(data: LoginRequest) -> None:
    errors = []
    if not data.email_or_phone.strip():
        errors.append({"field": "emailOrPhone", "message": "Email or phone number is required."})
    if not data.password:
        errors.append({"field": "password", "message": "Password is required."})
    if errors:
        raise ValidationFailed(errors)


# =============================================================================
# Router Factory
# =============================================================================

def create_auth_router(limiter: Limiter, login_rate_limit: str) -> APIRouter:
    """Build the auth router, rate limiting /login with `limiter`."""

    router = APIRouter(tags=["auth"])

    # -------------------------------------------------------------------------
    # Public Endpoints
    # -------------------------------------------------------------------------

    @router.post("/register", response_model=RegisterResponse, status_code=201)
    async def register(
        data: RegisterRequest,
        services: AuthServices = Depends(get_services),
    ):
        """
        Create a new account.

        Returns the user and a session token on success.
        """
        try:
            user = await services.credentials.register(
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email,
                phone=data.phone,
                password=data.password,
                address=data.address,
            )
        except AuthError as e:
            raise _http_error(e)

        token = await services.tokens.issue(user)
        return RegisterResponse(user=UserResponse.from_user(user), token=token)

    @router.post(
        "/login",
        response_model=LoginResponse,
        response_model_exclude_none=True,
    )
    @limiter.limit(login_rate_limit)
    async def login(
        request: Request,
        response: Response,
        data: LoginRequest,
        services: AuthServices = Depends(get_services),
    ):
        """
        Authenticate and start a session.

        The session token is set as an http-only cookie, not returned in the body.
        """
        settings = services.settings

        existing = request.cookies.get(settings.session_cookie_name)
        if existing:
            try:
                await services.tokens.verify(existing)
                return LoginResponse(message="User is already logged in.")
            except TokenError:
                logger.info("Stale session cookie on login, proceeding")

        try:
            _check_login_fields(data)
            user, token = await services.login(
                data.email_or_phone,
                data.password,
                data.two_factor_token,
            )
        except AuthError as e:
            raise _http_error(e)

        response.set_cookie(
            key=settings.session_cookie_name,
            value=token,
            httponly=True,
            secure=settings.is_production,
            samesite="strict",
            max_age=settings.session_token_expire_days * 24 * 60 * 60,
        )
        return LoginResponse(user=UserResponse.from_user(user))

    @router.post("/forgot-password", response_model=MessageResponse)
    async def forgot_password(
        data: ForgotPasswordRequest,
        services: AuthServices = Depends(get_services),
    ):
        """
        Request a password reset email.

        Unknown emails get the same answer unless disclosure is enabled.
        """
        try:
            await services.password_reset.request_reset(data.email)
        except UserNotFound as e:
            if services.settings.disclose_unknown_accounts:
                raise _http_error(e)

        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    @router.post("/reset-password/{token}", response_model=MessageResponse)
    async def reset_password(
        token: str,
        data: ResetPasswordRequest,
        services: AuthServices = Depends(get_services),
    ):
        """
        Reset password using the token from the email link.
        """
        try:
            await services.password_reset.complete_reset(token, data.password)
        except AuthError as e:
            raise _http_error(e)

        return MessageResponse(message="Password has been reset successfully.")

    # -------------------------------------------------------------------------
    # Protected Endpoints
    # -------------------------------------------------------------------------

    @router.post("/enable-2fa", response_model=TwoFactorSetupResponse)
    async def enable_two_factor(
        ctx: AuthContext = Depends(require_auth()),
        services: AuthServices = Depends(get_services),
    ):
        """
        Turn on two-factor auth and return the secret for the authenticator app.
        """
        try:
            setup = await services.two_factor.provision(ctx.user)
        except AuthError as e:
            raise _http_error(e)

        return TwoFactorSetupResponse(**setup.model_dump())

    @router.post("/disable-2fa", response_model=MessageResponse)
    async def disable_two_factor(
        ctx: AuthContext = Depends(require_auth()),
        services: AuthServices = Depends(get_services),
    ):
        """
        Turn off two-factor auth.
        """
        try:
            await services.two_factor.disable(ctx.user)
        except AuthError as e:
            raise _http_error(e)

        return MessageResponse(message="Two-factor authentication has been disabled.")

    @router.post("/logout", response_model=MessageResponse)
    async def logout(
        response: Response,
        ctx: AuthContext = Depends(require_auth()),
        services: AuthServices = Depends(get_services),
    ):
        """
        End the current session. Other sessions of the user stay active.
        """
        await services.tokens.revoke(ctx.user, ctx.token)
        response.delete_cookie(services.settings.session_cookie_name)
        return MessageResponse(message="Logged out successfully.")

    @router.get("/me", response_model=UserResponse)
    async def get_current_user(
        ctx: AuthContext = Depends(require_auth()),
    ):
        """
        Get the current authenticated user.
        """
        return UserResponse.from_user(ctx.user)

    # -------------------------------------------------------------------------
    # Role-gated Endpoints
    # -------------------------------------------------------------------------

    @router.get("/admin-dashboard", response_model=MessageResponse)
    async def admin_dashboard(
        ctx: AuthContext = Depends(require_roles(*ADMIN_ONLY)),
    ):
        return MessageResponse(message="Welcome to Admin Dashboard")

    @router.get("/trainer-dashboard", response_model=MessageResponse)
    async def trainer_dashboard(
        ctx: AuthContext = Depends(require_roles(*TRAINER_ONLY)),
    ):
        return MessageResponse(message="Welcome to Trainer Dashboard")

    return router
