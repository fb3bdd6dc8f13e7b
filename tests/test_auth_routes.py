"""
tests/test_auth_routes.py -- Integration tests for registration, OTP, login, and reset.

These tests exercise the full stack: FastAPI routing -> policy gate ->
UserStore/OtpService -> response model serialization. OTP codes are read
back from the app's store, standing in for the user's mailbox.

Coverage:
  - register -> verify-otp -> login yields a token carrying the registered role
  - duplicate registration -> 409, original record unmodified
  - login failures (unknown email, wrong password) are indistinguishable
  - unverified accounts cannot log in
  - OTP mismatch / expiry -> 400 with distinct codes
  - bearer-token handling on a protected route (/auth/me)
  - password reset round trip
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auth.models import OtpPurpose, OtpRecord, Role
from tests.conftest import TEST_PASSWORD, bearer, create_account


def _register(client: TestClient, email: str, role: str = "student", password: str = TEST_PASSWORD):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password, "role": role})


def _pending_code(client: TestClient, email: str) -> str:
    return client.app.state.user_store.get_otp(email).code


def _login(client: TestClient, email: str, password: str = TEST_PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegistrationFlow:
    @pytest.mark.parametrize("role", ["student", "instructor"])
    def test_register_verify_login_round_trip(self, api_client: TestClient, role: str) -> None:
        email = f"flow-{role}@example.com"
        resp = _register(api_client, email, role)
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["email"] == email
        assert body["role"] == role
        assert body["is_verified"] is False
        assert "hashed_password" not in body

        resp = api_client.post("/api/v1/auth/verify-otp", json={"email": email, "code": _pending_code(api_client, email)})
        assert resp.status_code == 200, resp.text

        resp = _login(api_client, email)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == role
        assert resp.headers["cache-control"] == "no-store"
        claims = api_client.app.state.tokens.verify(data["access_token"])
        assert claims.role == Role(role)
        assert claims.user_id == body["id"]

    def test_register_normalizes_email(self, api_client: TestClient) -> None:
        resp = _register(api_client, "  Mixed.Case@Example.com ")
        assert resp.status_code == 201
        assert resp.json()["email"] == "mixed.case@example.com"

    def test_duplicate_email_conflict_keeps_first_record(self, api_client: TestClient) -> None:
        first = _register(api_client, "dup@example.com", "student")
        assert first.status_code == 201
        second = _register(api_client, "DUP@example.com", "instructor", password="another-password")
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "conflict"
        stored = api_client.app.state.user_store.get_by_email("dup@example.com")
        assert stored.id == first.json()["id"]
        assert stored.role == Role.student
        assert api_client.app.state.hasher.verify(TEST_PASSWORD, stored.hashed_password)

    def test_admin_self_registration_forbidden_by_default(self, api_client: TestClient) -> None:
        resp = _register(api_client, "wannabe@example.com", "admin")
        assert resp.status_code == 403
        assert api_client.app.state.user_store.get_by_email("wannabe@example.com") is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "not-an-email", "password": TEST_PASSWORD},
            {"email": "short@example.com", "password": "short"},
            {"email": "role@example.com", "password": TEST_PASSWORD, "role": "superuser"},
            {"password": TEST_PASSWORD},
        ],
    )
    def test_bad_input_is_validation_error(self, api_client: TestClient, payload: dict) -> None:
        resp = api_client.post("/api/v1/auth/register", json=payload)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert TEST_PASSWORD not in resp.text

    def test_password_over_72_utf8_bytes_is_validation_error(self, api_client: TestClient) -> None:
        resp = _register(api_client, "multibyte@example.com", password="é" * 72)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert api_client.app.state.user_store.get_by_email("multibyte@example.com") is None

    def test_unverified_account_cannot_log_in(self, api_client: TestClient) -> None:
        _register(api_client, "pending@example.com")
        resp = _login(api_client, "pending@example.com")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "email_unverified"


class TestOtpVerification:
    def test_wrong_code_is_mismatch(self, api_client: TestClient) -> None:
        _register(api_client, "otp-wrong@example.com")
        real = _pending_code(api_client, "otp-wrong@example.com")
        wrong = "000000" if real != "000000" else "111111"
        resp = api_client.post("/api/v1/auth/verify-otp", json={"email": "otp-wrong@example.com", "code": wrong})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "otp_mismatch"
        assert api_client.app.state.user_store.get_by_email("otp-wrong@example.com").is_verified is False

    def test_expired_code_is_expired_even_if_correct(self, api_client: TestClient) -> None:
        email = "otp-expired@example.com"
        _register(api_client, email)
        store = api_client.app.state.user_store
        store.upsert_otp(
            OtpRecord(
                email=email,
                code="424242",
                purpose=OtpPurpose.verify_email,
                expires_at=(datetime.now(timezone.utc) - timedelta(seconds=1)).isoformat(),
            )
        )
        resp = api_client.post("/api/v1/auth/verify-otp", json={"email": email, "code": "424242"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "otp_expired"
        assert store.get_by_email(email).is_verified is False

    def test_resend_replaces_code(self, api_client: TestClient) -> None:
        email = "otp-resend@example.com"
        _register(api_client, email)
        store = api_client.app.state.user_store
        store.upsert_otp(
            OtpRecord(
                email=email,
                code="000001",
                purpose=OtpPurpose.verify_email,
                expires_at=(datetime.now(timezone.utc) + timedelta(minutes=5)).isoformat(),
            )
        )
        resp = api_client.post("/api/v1/auth/resend-otp", json={"email": email})
        assert resp.status_code == 202
        new_code = _pending_code(api_client, email)
        resp = api_client.post("/api/v1/auth/verify-otp", json={"email": email, "code": new_code})
        assert resp.status_code == 200

    def test_resend_for_unknown_email_looks_the_same(self, api_client: TestClient) -> None:
        known = "otp-known@example.com"
        _register(api_client, known)
        a = api_client.post("/api/v1/auth/resend-otp", json={"email": known})
        b = api_client.post("/api/v1/auth/resend-otp", json={"email": "ghost@example.com"})
        assert a.status_code == b.status_code == 202
        assert a.json() == b.json()
        assert api_client.app.state.user_store.get_otp("ghost@example.com") is None


class TestLogin:
    def test_unknown_email_and_wrong_password_are_indistinguishable(self, api_client: TestClient) -> None:
        create_account(api_client, "known@example.com", Role.student)
        unknown = _login(api_client, "nobody@example.com")
        wrong = _login(api_client, "known@example.com", password="wrong-password")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.json()["error"]["code"] == "bad_credentials"

    def test_short_wrong_password_is_401_not_422(self, api_client: TestClient) -> None:
        create_account(api_client, "shortpw@example.com", Role.student)
        assert _login(api_client, "shortpw@example.com", password="x").status_code == 401

    def test_login_email_case_insensitive(self, api_client: TestClient) -> None:
        create_account(api_client, "case@example.com", Role.instructor)
        assert _login(api_client, "CASE@example.com").status_code == 200


class TestBearerHandling:
    def test_me_with_valid_token(self, api_client: TestClient) -> None:
        uid = create_account(api_client, "me@example.com", Role.instructor)
        resp = api_client.get("/api/v1/auth/me", headers=bearer(api_client, uid, Role.instructor))
        assert resp.status_code == 200
        assert resp.json()["user_id"] == uid
        assert resp.json()["role"] == "instructor"

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Token abc"},
            {"Authorization": "Bearer "},
            {"Authorization": "Bearer not.a.jwt"},
        ],
    )
    def test_bad_or_missing_token_is_generic_401(self, api_client: TestClient, headers: dict) -> None:
        resp = api_client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {
            "error": {"code": "unauthorized", "message": "Authentication required.", "detail": None}
        }

    def test_expired_token_is_same_generic_401(self, api_client: TestClient) -> None:
        headers = bearer(api_client, 1, Role.admin, expire_seconds=-1)
        resp = api_client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"


class TestPasswordReset:
    def test_reset_round_trip(self, api_client: TestClient) -> None:
        email = "reset@example.com"
        create_account(api_client, email, Role.student)
        resp = api_client.post("/api/v1/auth/password-reset/request", json={"email": email})
        assert resp.status_code == 202
        code = _pending_code(api_client, email)
        resp = api_client.post(
            "/api/v1/auth/password-reset/confirm",
            json={"email": email, "code": code, "new_password": "brand-new-password"},
        )
        assert resp.status_code == 200, resp.text
        assert _login(api_client, email).status_code == 401
        assert _login(api_client, email, password="brand-new-password").status_code == 200

    def test_verification_code_cannot_reset_password(self, api_client: TestClient) -> None:
        email = "reset-cross@example.com"
        _register(api_client, email)
        code = _pending_code(api_client, email)
        resp = api_client.post(
            "/api/v1/auth/password-reset/confirm",
            json={"email": email, "code": code, "new_password": "brand-new-password"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "otp_mismatch"

    def test_overlong_new_password_is_rejected_and_code_kept(self, api_client: TestClient) -> None:
        email = "reset-long@example.com"
        create_account(api_client, email, Role.student)
        api_client.post("/api/v1/auth/password-reset/request", json={"email": email})
        code = _pending_code(api_client, email)
        resp = api_client.post(
            "/api/v1/auth/password-reset/confirm",
            json={"email": email, "code": code, "new_password": "é" * 72},
        )
        assert resp.status_code == 422
        assert api_client.app.state.user_store.get_otp(email) is not None

    def test_reset_code_dies_after_repeated_wrong_guesses(self, api_client: TestClient) -> None:
        email = "reset-guess@example.com"
        create_account(api_client, email, Role.student)
        api_client.post("/api/v1/auth/password-reset/request", json={"email": email})
        code = _pending_code(api_client, email)
        wrong = "000000" if code != "000000" else "111111"
        limit = api_client.app.state.settings.otp_max_attempts
        for _ in range(limit):
            resp = api_client.post(
                "/api/v1/auth/password-reset/confirm",
                json={"email": email, "code": wrong, "new_password": "attacker-password"},
            )
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == "otp_mismatch"

        resp = api_client.post(
            "/api/v1/auth/password-reset/confirm",
            json={"email": email, "code": code, "new_password": "attacker-password"},
        )
        assert resp.status_code == 400
        assert _login(api_client, email).status_code == 200

    def test_request_for_unknown_email_is_accepted_silently(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/password-reset/request", json={"email": "ghost@example.com"})
        assert resp.status_code == 202
