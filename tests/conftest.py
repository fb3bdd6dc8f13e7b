"""
tests/conftest.py -- Shared test fixtures for LMS Auth.

This module provides:
  - make_settings(): Settings pointing at an isolated in-memory database
  - api_client: TestClient over a freshly built app (one per test module)
  - seeded_users: one verified account per role with ready-made auth headers
  - helpers to create accounts and mint tokens without going through HTTP

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool and the two
stores open separate engines. Plain :memory: DBs are per-connection and would
present a blank schema to each of them. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

Apps are built with create_app(Settings(...)) -- no environment variables
are needed or read (the .env file is disabled with _env_file=None).
"""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import Role, User
from auth.passwords import PasswordHasher
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-definitely-long-enough"
TEST_PASSWORD = "correct-horse-battery"

# bcrypt's minimum cost -- the suite hashes a lot of passwords.
FAST_HASHER = PasswordHasher(rounds=4)


def make_settings(db_suffix: str, **overrides) -> Settings:
    """Return Settings bound to a named in-memory DB unique to db_suffix."""
    values = {
        "secret_key": TEST_SECRET,
        "database_url": f"sqlite:///file:lmsauth_{db_suffix}?mode=memory&cache=shared&uri=true",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def create_account(
    client: TestClient,
    email: str,
    role: Role,
    password: str = TEST_PASSWORD,
    verified: bool = True,
) -> int:
    """Insert a user straight into the app's store and return its id."""
    state = client.app.state
    return state.user_store.create_user(
        User(email=email, role=role, hashed_password=state.hasher.hash(password), is_verified=verified)
    )


def bearer(client: TestClient, user_id: int, role: Role, **kwargs) -> dict[str, str]:
    """Authorization header carrying a token minted by the app's own TokenService."""
    token = client.app.state.tokens.issue(user_id, role, **kwargs)
    return {"Authorization": f"Bearer {token}"}


@dataclass
class Account:
    id: int
    email: str
    role: Role
    headers: dict[str, str]


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one app and TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[TestClient, None, None]:
    """Yield a TestClient over an app with its own in-memory database.

    Entering the client runs the real lifespan, so the stores and OTP service
    are the production objects, just pointed at a throwaway DB.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    app = create_app(make_settings(suffix), hasher=FAST_HASHER)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture(scope="module")
def seeded_users(api_client: TestClient) -> dict[Role, Account]:
    """One verified account per role, keyed by Role."""
    accounts: dict[Role, Account] = {}
    for role in Role:
        email = f"seed-{role.value}@example.com"
        uid = create_account(api_client, email, role)
        accounts[role] = Account(id=uid, email=email, role=role, headers=bearer(api_client, uid, role))
    return accounts
