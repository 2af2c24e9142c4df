"""
Policies - the access gate for protected routes.

Just use: `ctx: AuthContext = Depends(require_auth())`
or, for role-gated routes: `ctx: AuthContext = Depends(require_roles(Role.ADMIN))`

Design:
- Authentication always runs first: bearer token from the Authorization
  header (or the session cookie set by /login), fully verified including
  the revocation check. Any failure is a 401.
- The role check runs only on an authenticated context and compares the
  user's role against a fixed allow-list. Failure is a 403.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from healthvibe.auth.context import AuthContext
from healthvibe.auth.errors import TokenError
from healthvibe.auth.roles import Role
from healthvibe.auth.services import AuthServices


UNAUTHENTICATED = "Please authenticate."
FORBIDDEN = "Access denied. Insufficient permissions."

# Optional bearer (doesn't fail if no token; the cookie may carry one)
optional_bearer = HTTPBearer(auto_error=False)


def get_services(request: Request) -> AuthServices:
    """Auth services built at startup."""
    return request.app.state.auth


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=UNAUTHENTICATED,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# Authentication
# =============================================================================


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
    cookie_name: str,
) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    if credentials is not None:
        return credentials.credentials
    if request.headers.get("Authorization"):
        # Present but not a well-formed "Bearer <token>"
        return None
    return request.cookies.get(cookie_name) or None


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> AuthContext:
    """Resolve and verify the caller, failing closed with 401."""
    services = get_services(request)

    token = extract_token(request, credentials, services.settings.session_cookie_name)
    if not token:
        raise _unauthenticated()

    try:
        user, claims = await services.tokens.verify(token)
    except TokenError:
        raise _unauthenticated()

    return AuthContext(user=user, token=token, claims=claims)


# =============================================================================
# Policy - role allow-lists
# =============================================================================


class RolePolicy:
    """
    A role allow-list that can be checked against a context.

        RolePolicy((Role.ADMIN,))                 # admins only
        RolePolicy((Role.ADMIN, Role.TRAINER))    # staff
    """

    def __init__(self, allowed: tuple[Role, ...]):
        if not allowed:
            raise ValueError("A role policy needs at least one role")
        self.allowed = allowed

    def check(self, ctx: AuthContext) -> tuple[bool, str | None]:
        """
        Check if context satisfies this policy.

        Returns: (allowed, error_message)
        """
        if not ctx.has_role(*self.allowed):
            return False, FORBIDDEN
        return True, None


# =============================================================================
# Main Interface
# =============================================================================


def require_auth() -> Callable:
    """Just require authentication, no specific role."""
    return get_auth_context


def require_roles(*roles: Role) -> Callable:
    """
    Require authentication plus one of `roles`.

    Usage:
        @router.get("/admin-dashboard")
        async def admin_dashboard(
            ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
        ):
            ...
    """
    policy = RolePolicy(tuple(roles))

    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        allowed, error = policy.check(ctx)
        if not allowed:
            raise HTTPException(status_code=403, detail=error)
        return ctx

    return dependency
