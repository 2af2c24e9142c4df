"""
Credential store - registration, lookup and password checks.

Passwords are hashed here and only here: once on registration and once per
password change. Other updates go straight to the store and never touch
`password_hash`. Hashing and verification run in a worker thread, off the
event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from healthvibe.auth.errors import AuthenticationFailed, DuplicateIdentity, ValidationFailed
from healthvibe.auth.models import (
    Address,
    User,
    normalize_email,
    normalize_phone,
    password_errors,
    validate_registration,
)
from healthvibe.auth.passwords import PasswordHasher
from healthvibe.core.utils import generate_id, utc_now

if TYPE_CHECKING:
    from healthvibe.storage.base import UserStore

logger = logging.getLogger(__name__)


class CredentialService:
    """Owns user records and their passwords."""

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        password_min_length: int = 6,
    ):
        self.store = store
        self.hasher = hasher
        self.password_min_length = password_min_length

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password: str,
        address: Address | None = None,
    ) -> User:
        """
        Create a new user.

        Raises:
            ValidationFailed: listing every invalid field
            DuplicateIdentity: email or phone already registered
        """
        profile = validate_registration(
            {
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "phone": phone,
            },
            password,
            self.password_min_length,
        )

        if await self.store.get_by_email(profile.email):
            raise DuplicateIdentity("User already exists with this email.")
        if await self.store.get_by_phone(profile.phone):
            raise DuplicateIdentity("User already exists with this phone number.")

        now = utc_now()
        user = User(
            id=generate_id("user"),
            first_name=profile.first_name,
            last_name=profile.last_name,
            email=profile.email,
            phone=profile.phone,
            password_hash=await asyncio.to_thread(self.hasher.hash, password),
            address=address,
            created_at=now,
            updated_at=now,
        )
        # The store re-checks uniqueness under its lock (concurrent registrations)
        await self.store.add(user)

        logger.info(f"Registered user {user.id}")
        return user

    async def find_by_email_or_phone(self, identifier: str) -> User | None:
        """Look a user up by email, falling back to phone."""
        if not identifier or not identifier.strip():
            return None
        user = await self.store.get_by_email(normalize_email(identifier))
        if user is None:
            user = await self.store.get_by_phone(normalize_phone(identifier))
        return user

    async def authenticate(self, identifier: str, password: str) -> User:
        """
        Check an email-or-phone + password pair.

        Raises:
            AuthenticationFailed: unknown user or wrong password (same error)
        """
        user = await self.find_by_email_or_phone(identifier)
        if user is None or not await asyncio.to_thread(self.hasher.verify, password, user.password_hash):
            logger.warning("Failed login attempt")
            raise AuthenticationFailed()
        return user

    async def change_password(self, user: User, new_password: str) -> User:
        """
        Replace a user's password and drop any pending reset.

        Raises:
            ValidationFailed: password too short
        """
        errors = password_errors(new_password, self.password_min_length)
        if errors:
            raise ValidationFailed(errors)

        updated = await self.store.update(user.id, {
            "password_hash": await asyncio.to_thread(self.hasher.hash, new_password),
            "reset_password_token": None,
            "reset_password_expires": None,
        })
        logger.info(f"Password changed for user {user.id}")
        return updated

    async def delete(self, user: User) -> bool:
        """Delete an account."""
        deleted = await self.store.delete(user.id)
        if deleted:
            logger.info(f"Deleted user {user.id}")
        return deleted
