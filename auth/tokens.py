"""
auth/tokens.py -- JWT session token issue and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), role, iat, and exp. There is no server-side session
       store -- validity is purely cryptographic and time-bound.

  Verification collapses every failure (malformed, bad signature, expired,
       missing claims, unknown role) into one AuthenticationError. The cause
       is logged for operators but never distinguished in the response.

  The secret is passed in at construction (from Settings) rather than read
       from a module-level global, so each app instance -- and each test --
       signs with exactly the key it was built with.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import Role, SessionClaims
from core.errors import AuthenticationError

logger = logging.getLogger("lmsauth.auth")

_ALGORITHM = "HS256"


class TokenService:
    """Issues and verifies signed session tokens."""

    def __init__(self, secret_key: str, expire_seconds: int = 86400) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, role: Role | str, expire_seconds: int | None = None) -> str:
        """Encode a signed JWT for user_id with the given role.

        Args:
            user_id:        Numeric user ID; stored as the string "sub" claim
                            (python-jose rejects non-string subjects).
            role:           The user's role at issue time.
            expire_seconds: Lifetime override. None uses the configured
                            default. Negative values produce an already-expired
                            token, which tests use to exercise expiry.
        """
        duration = self.expire_seconds if expire_seconds is None else expire_seconds
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "iat": now,
            "exp": now + timedelta(seconds=duration),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a JWT. Raises AuthenticationError on any failure."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError:
            logger.info("Token rejected: expired")
            raise AuthenticationError() from None
        except JWTError as exc:
            logger.info("Token rejected: %s", exc)
            raise AuthenticationError() from None

        try:
            return SessionClaims(
                user_id=int(payload["sub"]),
                role=Role(payload["role"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.info("Token rejected: missing or invalid claims")
            raise AuthenticationError() from None
