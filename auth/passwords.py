"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt refuses or truncates anything longer than 72 bytes, and non-ASCII
characters take more than one byte each. The request models reject such
passwords with a 422; hash() rejects them too (ValidationError) so no other
caller can get a silently weakened hash or a raw ValueError from bcrypt.
"""

from __future__ import annotations

import bcrypt

from core.errors import ValidationError

MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """Hash and check passwords.

    rounds is bcrypt's log2 cost factor. Tests pass a low value to keep the
    suite fast; production uses bcrypt's default (12).
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Timing equalization dummy hash [C1]. Computed once at construction
        # so the first login attempt is not measurably slower than later ones.
        self._dummy_hash = self.hash("lmsauth_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain. Every call uses a fresh salt."""
        if password_too_long(plain):
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8.")
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. A malformed hash is a mismatch."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt check against the dummy hash.

        Called when the account does not exist so that "unknown email" and
        "wrong password" take the same time [C1].
        """
        self.verify(plain, self._dummy_hash)
