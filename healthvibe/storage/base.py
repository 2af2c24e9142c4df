"""
Storage abstraction layer.

All persistence of user records goes through this interface. This allows
swapping implementations (in-memory → PostgreSQL, MongoDB, ...) without
changing the auth services.

Contract every implementation must honour:
- email and phone are unique across users (enforced on add and update)
- session list mutations for one user are serialized; appending and
  removing a session never loses a concurrent change to the same list
- a reset token is redeemed at most once (`consume_reset_token` is atomic)
- returned records are copies; mutating them has no effect until they are
  written back through `update`
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from healthvibe.auth.models import User


class UserStore(ABC):
    """
    Storage for user records.

    Production Implementation: a database with unique indexes on email/phone
    and an atomic array update for the session list
    Local Implementation: in-memory
    """

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add(self, user: User) -> None:
        """Insert a new user. Raises DuplicateIdentity on email/phone clash."""
        pass

    @abstractmethod
    async def get(self, user_id: str) -> User | None:
        """Get a user by ID."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        """Get a user by (already normalized) email."""
        pass

    @abstractmethod
    async def get_by_phone(self, phone: str) -> User | None:
        """Get a user by (already normalized) phone."""
        pass

    @abstractmethod
    async def consume_reset_token(self, token: str, now: datetime) -> User | None:
        """
        Redeem a pending reset token in one atomic step.

        If some user's token equals `token` and expires after `now`, clear
        both reset fields and return the updated user. Otherwise change
        nothing and return None. Of two concurrent calls with the same
        token, at most one gets the user.
        """
        pass

    @abstractmethod
    async def update(self, user_id: str, updates: dict[str, Any]) -> User | None:
        """
        Partial update of a user, applied atomically.

        The merged record is re-validated, so paired fields (two-factor
        flag/secret, reset token/expiry) must be updated together.
        Returns the updated user, or None if it does not exist.
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Delete a user."""
        pass

    # -------------------------------------------------------------------------
    # Session list
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_session(self, user_id: str, session_id: str) -> bool:
        """Append a session id. Returns False if the user does not exist."""
        pass

    @abstractmethod
    async def remove_session(self, user_id: str, session_id: str) -> bool:
        """
        Remove every entry equal to `session_id`.

        Idempotent: returns False (without error) when nothing matched.
        """
        pass

    @abstractmethod
    async def clear_sessions(self, user_id: str) -> int:
        """Remove all sessions of a user, returning how many were removed."""
        pass

    @abstractmethod
    async def has_session(self, user_id: str, session_id: str) -> bool:
        """Whether `session_id` is in the user's active session list."""
        pass
