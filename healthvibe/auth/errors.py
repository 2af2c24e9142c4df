"""
Auth error taxonomy.

Services raise these; routes and the access gate translate them into
HTTP responses. Messages are safe to show to clients: none of them carry
a password hash, a two-factor secret or session identifiers.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for identity and session errors."""

    status_code: int = 400
    message: str = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


# =============================================================================
# Input / identity
# =============================================================================


class ValidationFailed(AuthError):
    """Input failed one or more validation rules."""

    message = "Validation failed"

    def __init__(self, errors: list[dict[str, str]]):
        super().__init__(self.message)
        self.errors = errors


class DuplicateIdentity(AuthError):
    """Email or phone already belongs to another user."""

    message = "User already exists with this email or phone."


class UserNotFound(AuthError):
    status_code = 404
    message = "User not found with this email."


# =============================================================================
# Login
# =============================================================================


class AuthenticationFailed(AuthError):
    """Unknown user or wrong password; deliberately indistinguishable."""

    message = "Unable to login. Invalid credentials."


class TwoFactorRequired(AuthError):
    message = "Two-factor authentication token is required."


class InvalidTwoFactorCode(AuthError):
    status_code = 401
    message = "Invalid two-factor authentication token."


class TwoFactorAlreadyEnabled(AuthError):
    message = "Two-factor authentication is already enabled."


class TwoFactorNotEnabled(AuthError):
    message = "Two-factor authentication is not enabled."


# =============================================================================
# Session tokens
# =============================================================================


class TokenError(AuthError):
    """Base exception for token errors."""

    status_code = 401
    message = "Please authenticate."


class TokenMalformed(TokenError):
    """Token is not a decodable JWT or lacks required claims."""
    pass


class TokenSignatureInvalid(TokenError):
    pass


class TokenExpired(TokenError):
    """Token has expired."""
    pass


class TokenRevoked(TokenError):
    """Token is well-formed and fresh but no longer in the session list."""
    pass


# =============================================================================
# Password reset
# =============================================================================


class InvalidOrExpiredResetToken(AuthError):
    message = "Invalid or expired token."


# =============================================================================
# Infrastructure
# =============================================================================


class StorageError(Exception):
    """The user store failed; surfaced as a 500."""
    pass


class MailDeliveryError(Exception):
    """The mail transport rejected or failed a send; surfaced as a 500."""
    pass
