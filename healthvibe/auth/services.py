"""
Auth service container.

Built once at app startup from settings, a user store and a mailer, then
hung off `app.state.auth`. Route handlers and the access gate pull
services from here instead of module-level singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from healthvibe.auth.credentials import CredentialService
from healthvibe.auth.errors import InvalidTwoFactorCode, TwoFactorRequired
from healthvibe.auth.models import User
from healthvibe.auth.password_reset import PasswordResetService
from healthvibe.auth.passwords import PasswordHasher
from healthvibe.auth.tokens import SessionTokenService
from healthvibe.auth.two_factor import TwoFactorService
from healthvibe.config import Settings

if TYPE_CHECKING:
    from healthvibe.integrations.email import EmailService
    from healthvibe.storage.base import UserStore

logger = logging.getLogger(__name__)


@dataclass
class AuthServices:
    """Everything the auth routes need."""

    settings: Settings
    store: UserStore
    credentials: CredentialService
    tokens: SessionTokenService
    two_factor: TwoFactorService
    password_reset: PasswordResetService

    @classmethod
    def build(cls, settings: Settings, store: UserStore, mailer: EmailService) -> AuthServices:
        credentials = CredentialService(
            store,
            PasswordHasher(settings.password_hash_iterations),
            password_min_length=settings.password_min_length,
        )
        tokens = SessionTokenService(
            store,
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            lifetime=timedelta(days=settings.session_token_expire_days),
        )
        two_factor = TwoFactorService(
            store,
            issuer=settings.totp_issuer,
            interval=settings.totp_interval_seconds,
            valid_window=settings.totp_valid_window,
        )
        password_reset = PasswordResetService(
            store,
            credentials,
            tokens,
            mailer,
            public_base_url=settings.public_base_url,
            token_ttl=timedelta(minutes=settings.reset_token_expire_minutes),
            revoke_sessions=settings.reset_revokes_sessions,
        )
        return cls(
            settings=settings,
            store=store,
            credentials=credentials,
            tokens=tokens,
            two_factor=two_factor,
            password_reset=password_reset,
        )

    async def login(
        self,
        identifier: str,
        password: str,
        two_factor_code: str | None = None,
    ) -> tuple[User, str]:
        """
        Password check, then the one-time code if 2FA is on, then a session.

        Raises:
            AuthenticationFailed: unknown user or wrong password
            TwoFactorRequired: 2FA on and no code given
            InvalidTwoFactorCode: 2FA on and the code does not verify
        """
        user = await self.credentials.authenticate(identifier, password)

        if user.two_factor_enabled:
            if not two_factor_code:
                raise TwoFactorRequired()
            if not self.two_factor.verify_code(user, two_factor_code):
                logger.warning(f"Invalid two-factor code for user {user.id}")
                raise InvalidTwoFactorCode()

        token = await self.tokens.issue(user)
        logger.info(f"User {user.id} logged in")
        return user, token
