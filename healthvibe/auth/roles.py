"""
Roles and membership tiers.

This defines WHO a user is on the platform, not HOW we check it.
The actual checking happens in policies.py.
"""

from enum import Enum


class Role(str, Enum):
    """Platform-wide role of a user."""

    USER = "user"        # Regular member
    ADMIN = "admin"      # Site administration
    TRAINER = "trainer"  # Instructors running classes


class MembershipTier(str, Enum):
    """Paid membership level."""

    BASIC = "basic"
    PREMIUM = "premium"
    PRO = "pro"


# =============================================================================
# Route allow-lists
# =============================================================================


ADMIN_ONLY: tuple[Role, ...] = (Role.ADMIN,)
TRAINER_ONLY: tuple[Role, ...] = (Role.TRAINER,)


def is_allowed(role: Role | str, allowed: tuple[Role, ...]) -> bool:
    """Check if a role is in an allow-list."""
    if isinstance(role, str):
        try:
            role = Role(role)
        except ValueError:
            return False
    return role in allowed
