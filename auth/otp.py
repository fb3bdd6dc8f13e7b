"""
auth/otp.py -- One-time passcode generation and verification.

Lifecycle:
  1. issue() generates a numeric code, stores it with an expiry, and replaces
     any code still pending for that email.
  2. verify() has three outcomes:
       success  -- record consumed; for verify_email the account is marked verified
       expired  -- OtpExpiredError, even if the code matches; record consumed
       mismatch -- OtpMismatchError (wrong code, no record, or wrong purpose);
                   the record stays so the user can retry, until max_attempts
                   wrong guesses have been made against it, then it is deleted
  3. purge_expired() sweeps codes nobody came back for.

Codes come from the secrets module (CSPRNG) and are compared with
hmac.compare_digest so comparison time does not leak matching prefixes.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from auth.models import OtpPurpose, OtpRecord
from auth.store import UserStore
from core.errors import OtpExpiredError, OtpMismatchError

logger = logging.getLogger("lmsauth.auth.otp")


class OtpService:
    def __init__(
        self,
        store: UserStore,
        length: int = 6,
        expire_seconds: int = 600,
        max_attempts: int = 5,
    ) -> None:
        self.store = store
        self.length = length
        self.expire_seconds = expire_seconds
        self.max_attempts = max_attempts

    def generate(self) -> str:
        """Return a fresh numeric code of the configured length (leading zeros kept)."""
        return "".join(secrets.choice("0123456789") for _ in range(self.length))

    def issue(self, email: str, purpose: OtpPurpose = OtpPurpose.verify_email) -> str:
        """Generate and persist a code for email. Returns the code for delivery."""
        code = self.generate()
        now = datetime.now(timezone.utc)
        self.store.upsert_otp(
            OtpRecord(
                email=email,
                code=code,
                purpose=purpose,
                expires_at=(now + timedelta(seconds=self.expire_seconds)).isoformat(),
                created_at=now.isoformat(),
            )
        )
        logger.info("OTP issued for %s (purpose=%s)", email, OtpPurpose(purpose).value)
        return code

    def verify(self, email: str, submitted: str, purpose: OtpPurpose = OtpPurpose.verify_email) -> None:
        """Check submitted against the pending code for email.

        Returns None on success. Raises OtpExpiredError or OtpMismatchError.
        Expiry is checked before the value so an expired code is reported as
        expired whether or not it matches.
        """
        record = self.store.get_otp(email)
        if record is None or record.purpose != OtpPurpose(purpose):
            raise OtpMismatchError()

        if datetime.now(timezone.utc) >= datetime.fromisoformat(record.expires_at):
            self.store.delete_otp(email)
            logger.info("OTP for %s expired", email)
            raise OtpExpiredError()

        if not hmac.compare_digest(record.code.encode(), submitted.strip().encode()):
            if self.store.record_otp_failure(email) >= self.max_attempts:
                self.store.delete_otp(email)
                logger.warning("OTP for %s discarded after %d wrong attempts", email, self.max_attempts)
            raise OtpMismatchError()

        self.store.delete_otp(email)
        if record.purpose == OtpPurpose.verify_email:
            self.store.mark_verified(email)
        logger.info("OTP verified for %s (purpose=%s)", email, record.purpose.value)

    def purge_expired(self) -> int:
        removed = self.store.purge_expired_otps()
        if removed:
            logger.info("Purged %d expired OTP record(s)", removed)
        return removed
