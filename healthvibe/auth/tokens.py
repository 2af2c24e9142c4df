# =============================================================================
# Session Tokens
# =============================================================================
#
# Session tokens are HS256 JWTs carrying {sub, role, iat, exp, jti}.
# A token is valid when two independent checks pass:
#   1. signature + expiry (local, no store access)
#   2. its jti is still in the user's session list (one store lookup)
# Logout removes the jti from the list, which invalidates the token before
# its natural expiry without rotating the signing key.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

import jwt
from pydantic import ValidationError

from healthvibe.auth.errors import (
    TokenExpired,
    TokenMalformed,
    TokenRevoked,
    TokenSignatureInvalid,
)
from healthvibe.auth.models import TokenClaims, User
from healthvibe.core.utils import generate_id, utc_now

if TYPE_CHECKING:
    from healthvibe.storage.base import UserStore

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "role", "iat", "exp", "jti"]
DEFAULT_LIFETIME = timedelta(days=7)


class SessionTokenService:
    """Issue, verify and revoke session tokens."""

    def __init__(
        self,
        store: UserStore,
        secret_key: str,
        algorithm: str = "HS256",
        lifetime: timedelta = DEFAULT_LIFETIME,
    ):
        self.store = store
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime

    # =========================================================================
    # Issue
    # =========================================================================

    async def issue(self, user: User) -> str:
        """Create a signed token for `user` and record it as an active session."""
        now = utc_now()
        session_id = generate_id("sess")

        payload = {
            "sub": user.id,
            "role": user.role.value,
            "iat": now,
            "exp": now + self.lifetime,
            "jti": session_id,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

        await self.store.add_session(user.id, session_id)
        logger.info(f"Issued session {session_id} for user {user.id}")
        return token

    # =========================================================================
    # Verify
    # =========================================================================

    def decode(self, token: str, verify_exp: bool = True) -> TokenClaims:
        """
        Check signature and expiry and return the claims.

        Raises:
            TokenSignatureInvalid: signed with another key
            TokenExpired: past its exp
            TokenMalformed: anything else wrong with it
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS, "verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired("Token has expired")
        except jwt.InvalidSignatureError:
            raise TokenSignatureInvalid("Token signature is invalid")
        except jwt.InvalidTokenError as e:
            raise TokenMalformed(f"Invalid token: {e}")

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError:
            raise TokenMalformed("Invalid token claims")

    async def verify(self, token: str) -> tuple[User, TokenClaims]:
        """
        Full verification: signature and expiry first, then revocation.

        Returns the token's user and claims.

        Raises:
            TokenError subclass on any failure
        """
        claims = self.decode(token)

        user = await self.store.get(claims.sub)
        if user is None or claims.jti not in user.session_ids:
            raise TokenRevoked("Session is no longer active")

        return user, claims

    # =========================================================================
    # Revoke
    # =========================================================================

    async def revoke(self, user: User, token: str) -> bool:
        """
        Remove the token's session from the user's list.

        Idempotent; an expired token can still be revoked.
        Returns True if a session was removed.
        """
        claims = self.decode(token, verify_exp=False)
        if claims.sub != user.id:
            return False
        removed = await self.store.remove_session(user.id, claims.jti)
        if removed:
            logger.info(f"Revoked session {claims.jti} for user {user.id}")
        return removed

    async def revoke_all(self, user: User) -> int:
        """End every session of a user."""
        count = await self.store.clear_sessions(user.id)
        logger.info(f"Revoked {count} session(s) for user {user.id}")
        return count
