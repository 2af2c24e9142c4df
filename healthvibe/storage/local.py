"""
Local storage implementation for development and tests.

In-memory, works without any external services. Writes for a single user
are serialized with a per-user lock; insertions and identity changes take
a store-wide lock so the email/phone indexes stay unique.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Any

from healthvibe.auth.errors import DuplicateIdentity
from healthvibe.auth.models import User
from healthvibe.core.utils import utc_now
from healthvibe.storage.base import UserStore


class InMemoryUserStore(UserStore):
    """In-memory user storage."""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._by_email: dict[str, str] = {}  # email -> user_id
        self._by_phone: dict[str, str] = {}  # phone -> user_id
        self._index_lock = asyncio.Lock()
        self._user_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def add(self, user: User) -> None:
        async with self._index_lock:
            self._check_unique(user)
            self._users[user.id] = user.model_copy(deep=True)
            self._by_email[user.email] = user.id
            self._by_phone[user.phone] = user.id

    async def get(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_by_email(self, email: str) -> User | None:
        user_id = self._by_email.get(email)
        return await self.get(user_id) if user_id else None

    async def get_by_phone(self, phone: str) -> User | None:
        user_id = self._by_phone.get(phone)
        return await self.get(user_id) if user_id else None

    async def consume_reset_token(self, token: str, now: datetime) -> User | None:
        if not token:
            return None
        async with self._index_lock:
            for user_id, user in self._users.items():
                if user.reset_password_token == token:
                    break
            else:
                return None

            async with self._user_locks[user_id]:
                if user.reset_password_expires is None or user.reset_password_expires <= now:
                    return None
                consumed = user.model_copy(deep=True, update={
                    "reset_password_token": None,
                    "reset_password_expires": None,
                    "updated_at": utc_now(),
                })
                self._users[user_id] = consumed
                return consumed.model_copy(deep=True)

    async def update(self, user_id: str, updates: dict[str, Any]) -> User | None:
        async with self._index_lock, self._user_locks[user_id]:
            current = self._users.get(user_id)
            if current is None:
                return None

            merged = User.model_validate({
                **current.model_dump(),
                **updates,
                "id": current.id,
                "updated_at": utc_now(),
            })
            self._check_unique(merged)

            del self._by_email[current.email]
            del self._by_phone[current.phone]
            self._users[user_id] = merged
            self._by_email[merged.email] = user_id
            self._by_phone[merged.phone] = user_id
            return merged.model_copy(deep=True)

    async def delete(self, user_id: str) -> bool:
        async with self._index_lock, self._user_locks[user_id]:
            user = self._users.pop(user_id, None)
            if user is None:
                return False
            del self._by_email[user.email]
            del self._by_phone[user.phone]
        self._user_locks.pop(user_id, None)
        return True

    # -------------------------------------------------------------------------
    # Session list
    # -------------------------------------------------------------------------

    async def add_session(self, user_id: str, session_id: str) -> bool:
        async with self._user_locks[user_id]:
            user = self._users.get(user_id)
            if user is None:
                return False
            user.session_ids.append(session_id)
            return True

    async def remove_session(self, user_id: str, session_id: str) -> bool:
        async with self._user_locks[user_id]:
            user = self._users.get(user_id)
            if user is None:
                return False
            before = len(user.session_ids)
            user.session_ids = [s for s in user.session_ids if s != session_id]
            return len(user.session_ids) < before

    async def clear_sessions(self, user_id: str) -> int:
        async with self._user_locks[user_id]:
            user = self._users.get(user_id)
            if user is None:
                return 0
            removed = len(user.session_ids)
            user.session_ids = []
            return removed

    async def has_session(self, user_id: str, session_id: str) -> bool:
        user = self._users.get(user_id)
        return user is not None and session_id in user.session_ids

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _check_unique(self, user: User) -> None:
        email_owner = self._by_email.get(user.email)
        if email_owner is not None and email_owner != user.id:
            raise DuplicateIdentity("User already exists with this email.")
        phone_owner = self._by_phone.get(user.phone)
        if phone_owner is not None and phone_owner != user.id:
            raise DuplicateIdentity("User already exists with this phone number.")


# =============================================================================
# Factory
# =============================================================================


def create_local_storage() -> UserStore:
    """Create a UserStore with the local implementation."""
    return InMemoryUserStore()
