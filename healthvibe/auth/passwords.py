# =============================================================================
# Password Hashing
# =============================================================================
#
# Salted PBKDF2-HMAC-SHA256. The iteration count is the work factor; it is
# stored in every hash so that raising it in configuration only affects
# passwords set afterwards, and older hashes keep verifying.
#
# Stored format:  pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>
#
# =============================================================================

from __future__ import annotations

import hashlib
import secrets

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 310_000
SALT_BYTES = 16


class PasswordHasher:
    """One-way password hash + verify with a configurable work factor."""

    def __init__(self, iterations: int = DEFAULT_ITERATIONS):
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations

    def hash(self, password: str) -> str:
        """Hash a password with a fresh random salt."""
        salt = secrets.token_hex(SALT_BYTES)
        digest = self._derive(password, salt, self.iterations)
        return f"{ALGORITHM}${self.iterations}${salt}${digest}"

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash."""
        try:
            algorithm, iterations, salt, stored = password_hash.split("$")
            if algorithm != ALGORITHM:
                return False
            digest = self._derive(password, salt, int(iterations))
            return secrets.compare_digest(digest, stored)
        except (ValueError, AttributeError):
            return False

    @staticmethod
    def _derive(password: str, salt: str, iterations: int) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            salt.encode("utf-8"),
            iterations=iterations,
        ).hex()
