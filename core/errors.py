"""
core/errors.py -- Domain error taxonomy for LMS Auth.

Every error a component can raise on purpose is an AppError subclass. Each
class carries the HTTP status and machine-readable code it maps to, so the
exception handler in api/main.py renders all of them with one function and
route handlers never build error responses by hand.

Security:
  message is the client-facing text and is always generic for auth failures.
  Wrong password, unknown email, bad signature and expired token all surface
  as the same AuthenticationError body so responses cannot be used to
  enumerate accounts. The specific cause goes to the log, not the client.
  One exception: login with the correct password on an account whose email
  is not yet verified gets code "email_unverified", so the client can offer
  to resend the OTP. Only someone who already knows the password sees it.

  PersistenceError never carries the driver's exception text in message --
  SQL fragments and file paths stay server-side.

Layer rule: core/ is the kernel and imports nothing from api/, auth/, catalog/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for expected, client-reportable failures."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, code: str | None = None, detail: str | None = None) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        self.detail = detail
        super().__init__(self.message)


class ValidationError(AppError):
    """Request input is well-formed JSON but semantically unacceptable."""

    status_code = 422
    code = "validation_error"
    message = "Request validation failed."


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class DuplicateResourceError(AppError):
    """A unique key (email, course enrollment) is already taken."""

    status_code = 409
    code = "conflict"
    message = "Resource already exists."


class AuthenticationError(AppError):
    """Missing, malformed, expired, or forged credentials.

    Always code "unauthorized" except at login, which uses "bad_credentials"
    for any wrong email or password and "email_unverified" only after the
    password has checked out.
    """

    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class AuthorizationError(AppError):
    """Authenticated, but the role (or ownership) does not permit the action."""

    status_code = 403
    code = "forbidden"
    message = "You do not have permission to perform this action."


class OtpExpiredError(AppError):
    status_code = 400
    code = "otp_expired"
    message = "The verification code has expired. Request a new one."


class OtpMismatchError(AppError):
    status_code = 400
    code = "otp_mismatch"
    message = "The verification code is incorrect."


class PersistenceError(AppError):
    """The database is unreachable or failed mid-operation."""

    status_code = 503
    code = "service_unavailable"
    message = "The service is temporarily unavailable."
