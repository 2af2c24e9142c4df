"""
Password reset - single-use, time-limited reset tokens.

Each user holds at most one pending reset. Requesting a new one overwrites
the previous token, so only the newest link works. Completing a reset
clears the token, so a link works once.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from healthvibe.auth.credentials import CredentialService
from healthvibe.auth.errors import InvalidOrExpiredResetToken, UserNotFound, ValidationFailed
from healthvibe.auth.models import User, password_errors
from healthvibe.auth.tokens import SessionTokenService
from healthvibe.core.utils import utc_now

if TYPE_CHECKING:
    from healthvibe.integrations.email import EmailService
    from healthvibe.storage.base import UserStore

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 32


class PasswordResetService:
    """Issue reset links and redeem them."""

    def __init__(
        self,
        store: UserStore,
        credentials: CredentialService,
        tokens: SessionTokenService,
        mailer: EmailService,
        public_base_url: str,
        token_ttl: timedelta = timedelta(hours=1),
        revoke_sessions: bool = True,
    ):
        self.store = store
        self.credentials = credentials
        self.tokens = tokens
        self.mailer = mailer
        self.public_base_url = public_base_url.rstrip("/")
        self.token_ttl = token_ttl
        self.revoke_sessions = revoke_sessions

    def reset_url(self, token: str) -> str:
        return f"{self.public_base_url}/reset-password/{token}"

    async def request_reset(self, identifier: str) -> str:
        """
        Store a fresh reset token for the user and email them the link.

        Returns the raw token (callers must not echo it to the requester).

        Raises:
            UserNotFound: no user with that email/phone
            MailDeliveryError: the mail transport failed
        """
        user = await self.credentials.find_by_email_or_phone(identifier)
        if user is None:
            raise UserNotFound()

        token = secrets.token_hex(RESET_TOKEN_BYTES)
        await self.store.update(user.id, {
            "reset_password_token": token,
            "reset_password_expires": utc_now() + self.token_ttl,
        })
        logger.info(f"Password reset requested for user {user.id}")

        await self.mailer.send_password_reset(
            user.email,
            self.reset_url(token),
            expires_minutes=int(self.token_ttl.total_seconds() // 60),
        )
        return token

    async def complete_reset(self, token: str, new_password: str) -> User:
        """
        Set a new password using a reset token.

        Raises:
            ValidationFailed: new password too short
            InvalidOrExpiredResetToken: unknown, used, or expired token
        """
        errors = password_errors(new_password, self.credentials.password_min_length)
        if errors:
            raise ValidationFailed(errors)

        user = await self.store.consume_reset_token(token, utc_now())
        if user is None:
            raise InvalidOrExpiredResetToken()

        updated = await self.credentials.change_password(user, new_password)

        if self.revoke_sessions:
            await self.tokens.revoke_all(updated)
            updated = await self.store.get(user.id)

        logger.info(f"Password reset completed for user {user.id}")
        return updated
