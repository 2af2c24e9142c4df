"""
Storage abstractions.

Integration Points:
- UserStore → any database with unique indexes on email/phone
"""

from healthvibe.storage.base import UserStore
from healthvibe.storage.local import InMemoryUserStore, create_local_storage

__all__ = [
    "UserStore",
    "InMemoryUserStore",
    "create_local_storage",
]
