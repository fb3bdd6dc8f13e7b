"""
auth/mailer.py -- OTP delivery.

Route handlers hand codes to app.state.otp_mailer and never care how they
travel. LogOtpMailer is the default: it writes to the application log, and
only includes the code itself in DEBUG mode so production logs never hold
live credentials. A deployment that sends real email supplies its own object
with the same send() signature to create_app().
"""

from __future__ import annotations

import logging
from typing import Protocol

from auth.models import OtpPurpose

logger = logging.getLogger("lmsauth.auth.mailer")


class OtpMailer(Protocol):
    def send(self, email: str, code: str, purpose: OtpPurpose) -> None: ...


class LogOtpMailer:
    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    def send(self, email: str, code: str, purpose: OtpPurpose) -> None:
        if self.debug:
            logger.info("OTP for %s (%s): %s", email, purpose.value, code)
        else:
            logger.info("OTP ready for %s (%s); no mail transport configured", email, purpose.value)
