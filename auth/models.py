"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; services, stores, and
routes do the work.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """The closed set of roles. Permission checks are membership tests only --
    there is no hierarchy, admin does not implicitly include instructor."""

    admin = "admin"
    instructor = "instructor"
    student = "student"


class OtpPurpose(str, Enum):
    verify_email = "verify_email"
    reset_password = "reset_password"


@dataclass
class User:
    """A registered account.

    email is stored lower-cased and doubles as the login name.
    role is assigned at creation; no route changes it.
    is_verified flips to True once the registration OTP is confirmed; login
    refuses unverified accounts.
    """

    email: str
    role: Role
    hashed_password: str
    id: int | None = None
    is_verified: bool = False
    full_name: str | None = None
    bio: str | None = None
    created_at: str | None = None


@dataclass
class OtpRecord:
    """A pending one-time passcode. At most one per email -- issuing a new
    code replaces the old one."""

    email: str
    code: str
    purpose: OtpPurpose
    expires_at: str  # ISO 8601, UTC
    attempts: int = 0  # wrong guesses so far
    created_at: str | None = None


@dataclass(frozen=True)
class SessionClaims:
    """Decoded, verified token payload. Never persisted.

    user_id is the integer form of the JWT "sub" claim.
    """

    user_id: int
    role: Role
    issued_at: int  # epoch seconds
    expires_at: int  # epoch seconds
