"""
api/routes/v1/auth.py -- Registration, OTP verification, login, password reset.

Routes:
  POST /api/v1/auth/register                 -- create unverified account, send OTP
  POST /api/v1/auth/login                    -- password login; returns bearer JWT
  POST /api/v1/auth/verify-otp               -- confirm email with the OTP
  POST /api/v1/auth/resend-otp               -- issue a fresh email-verification OTP
  POST /api/v1/auth/password-reset/request   -- send a reset OTP
  POST /api/v1/auth/password-reset/confirm   -- set a new password with the reset OTP
  GET  /api/v1/auth/me                       -- identity carried by the token

Access policy for each route is declared in api/policy.py, not here.

Security:
  [C1] Login always runs one bcrypt check, against the dummy hash when the
       email is unknown, so response time does not reveal which accounts exist.
  Unknown email and wrong password return the same "bad_credentials" body.
  resend-otp and password-reset/request answer 202 whether or not the email
  is registered.
  [M5] Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    EmailOnlyRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PasswordResetConfirm,
    RegisterRequest,
    UserResponse,
    VerifyOtpRequest,
)
from auth.dependencies import get_current_claims
from auth.models import OtpPurpose, Role, SessionClaims, User
from core.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger("lmsauth.api.auth")

router = APIRouter(prefix="/api/v1", tags=["Auth"])

_BAD_CREDENTIALS = "Invalid email or password."


def _send_otp(request: Request, email: str, purpose: OtpPurpose) -> None:
    code = request.app.state.otp_service.issue(email, purpose)
    request.app.state.otp_mailer.send(email, code, purpose)


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an unverified account and send the email-verification OTP.

    The password is hashed before the insert; a duplicate email is rejected
    by the store's UNIQUE constraint (409) without touching the existing row.
    """
    state = request.app.state
    if body.role == Role.admin and not state.settings.allow_admin_registration:
        raise AuthorizationError("Admin accounts cannot be self-registered.")

    user = User(
        email=body.email,
        role=body.role,
        hashed_password=state.hasher.hash(body.password),
        full_name=body.full_name,
    )
    user_id = state.user_store.create_user(user)
    _send_otp(request, body.email, OtpPurpose.verify_email)
    logger.info("Registered user %d (%s)", user_id, body.role.value)
    return UserResponse.from_user(state.user_store.get_by_id(user_id))


@router.post("/auth/verify-otp", response_model=MessageResponse)
def verify_otp(request: Request, body: VerifyOtpRequest) -> MessageResponse:
    """Mark the account verified. 400 otp_expired / otp_mismatch on failure."""
    request.app.state.otp_service.verify(body.email, body.code, OtpPurpose.verify_email)
    return MessageResponse(message="Email verified.")


@router.post("/auth/resend-otp", response_model=MessageResponse, status_code=202)
def resend_otp(request: Request, body: EmailOnlyRequest) -> MessageResponse:
    """Issue a fresh verification code if the account exists and is unverified."""
    user = request.app.state.user_store.get_by_email(body.email)
    if user is not None and not user.is_verified:
        _send_otp(request, body.email, OtpPurpose.verify_email)
    return MessageResponse(message="If the account needs verification, a new code has been sent.")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest, response: Response) -> LoginResponse:
    """Authenticate with email and password; return a bearer token.

    An unverified account with the correct password gets a distinct
    "email_unverified" code. That is only reachable with the right password,
    so it leaks nothing an attacker could not already confirm.
    """
    state = request.app.state
    user = state.user_store.get_by_email(body.email)
    if user is None:
        state.hasher.verify_dummy(body.password)  # [C1]
        raise AuthenticationError(_BAD_CREDENTIALS, code="bad_credentials")
    if not state.hasher.verify(body.password, user.hashed_password):
        raise AuthenticationError(_BAD_CREDENTIALS, code="bad_credentials")
    if not user.is_verified:
        raise AuthenticationError("Email address has not been verified.", code="email_unverified")

    token = state.tokens.issue(user.id, user.role)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    logger.info("User %d logged in", user.id)
    return LoginResponse(
        access_token=token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=state.tokens.expire_seconds,
        role=user.role,
    )


@router.get("/auth/me", response_model=MeResponse)
def me(claims: SessionClaims = Depends(get_current_claims)) -> MeResponse:
    return MeResponse(user_id=claims.user_id, role=claims.role, expires_at=claims.expires_at)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/password-reset/request", response_model=MessageResponse, status_code=202)
def request_password_reset(request: Request, body: EmailOnlyRequest) -> MessageResponse:
    """Send a reset code to a registered email. Same answer for unknown emails."""
    if request.app.state.user_store.get_by_email(body.email) is not None:
        _send_otp(request, body.email, OtpPurpose.reset_password)
    return MessageResponse(message="If the account exists, a reset code has been sent.")


@router.post("/auth/password-reset/confirm", response_model=MessageResponse)
def confirm_password_reset(request: Request, body: PasswordResetConfirm) -> MessageResponse:
    """Replace the password after the reset OTP checks out.

    Receiving the code proves control of the mailbox, so the account is also
    marked verified. Tokens issued before the reset stay valid until they
    expire -- there is no server-side session list to revoke.
    """
    state = request.app.state
    state.otp_service.verify(body.email, body.code, OtpPurpose.reset_password)
    state.user_store.update_password(body.email, state.hasher.hash(body.new_password))
    state.user_store.mark_verified(body.email)
    logger.info("Password reset completed for %s", body.email)
    return MessageResponse(message="Password updated.")
