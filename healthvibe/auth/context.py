"""
Auth context - who is making this request.

This is the lightweight object passed to route handlers once the access
gate has authenticated the caller. Handlers never read identity off the
raw request.
"""

from __future__ import annotations

from dataclasses import dataclass

from healthvibe.auth.models import TokenClaims, User
from healthvibe.auth.roles import Role, is_allowed


@dataclass(frozen=True)
class AuthContext:
    """
    Authenticated identity for a request.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require_auth())):
            print(f"User {ctx.user_id} with role {ctx.role}")
    """

    # Who (as loaded from the store while verifying the token)
    user: User

    # The bearer token presented, and its verified claims
    token: str
    claims: TokenClaims

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> Role:
        return self.user.role

    @property
    def session_id(self) -> str:
        return self.claims.jti

    def has_role(self, *roles: Role) -> bool:
        """Check if the user's role is one of `roles`."""
        return is_allowed(self.role, roles)
