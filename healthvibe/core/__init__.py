"""
Core module - shared infrastructure.

This module contains:
- utils: Shared utility functions (ids, clocks)
"""

from healthvibe.core.utils import generate_id, utc_now

__all__ = [
    "generate_id",
    "utc_now",
]
