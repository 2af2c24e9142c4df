"""
Identity and sessions - accounts, login, two-factor, password reset, roles.

Design principles:
1. Services hold the rules, routes only translate to HTTP
2. Every session is a signed token AND a server-side record (revocable)
3. One gate dependency for authentication, role checks layered on top
4. Storage and mail delivery are injected, never imported globally
"""

from healthvibe.auth.context import AuthContext
from healthvibe.auth.policies import (
    RolePolicy,
    get_auth_context,
    require_auth,
    require_roles,
)
from healthvibe.auth.roles import MembershipTier, Role
from healthvibe.auth.models import TokenClaims, User, UserResponse
from healthvibe.auth.passwords import PasswordHasher
from healthvibe.auth.services import AuthServices
from healthvibe.auth.routes import create_auth_router

__all__ = [
    # Main interface
    "require_auth",
    "require_roles",
    "AuthContext",
    "get_auth_context",
    # Types
    "RolePolicy",
    "Role",
    "MembershipTier",
    "User",
    "UserResponse",
    "TokenClaims",
    # Services
    "AuthServices",
    "PasswordHasher",
    # Router
    "create_auth_router",
]
