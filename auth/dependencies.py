"""
auth/dependencies.py -- Request-pipeline stages and FastAPI Depends() helpers.

The access gate is an ordered pipeline of stages (see PIPELINE). Each stage
takes the request and the route's allowed-role set, and either returns
normally (continue to the next stage) or raises an AppError (terminal
response, rendered by the exception handlers in api/main.py):

  authenticate -- Authorization: Bearer <token> -> TokenService.verify ->
                  request.state.claims. Any failure -> AuthenticationError (401).
  authorize    -- request.state.claims.role in allowed -> continue; otherwise
                  AuthorizationError (403). No claims at all (authenticate did
                  not run) -> AuthenticationError (401), never 403.

api/policy.py decides which routes run the pipeline; route handlers then use
get_current_claims() / get_current_user() to read the identity.

Layer rule: no imports from api/ or catalog/. This module may import from
fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.models import Role, SessionClaims, User
from core.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger("lmsauth.auth")

_BEARER_PREFIX = "Bearer "


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


def authenticate(request: Request, allowed: frozenset[Role] = frozenset()) -> None:
    """Verify the bearer token and attach its claims to request.state.

    Never reveals which check failed: missing header, wrong scheme, and a bad
    token all raise the same AuthenticationError.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise AuthenticationError()
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationError()
    request.state.claims = request.app.state.tokens.verify(token)


def authorize(request: Request, allowed: frozenset[Role]) -> None:
    """Reject the request unless its role is a member of allowed."""
    claims: SessionClaims | None = getattr(request.state, "claims", None)
    if claims is None:
        raise AuthenticationError()
    if claims.role not in allowed:
        logger.info(
            "Role %s denied on %s %s (allowed: %s)",
            claims.role.value,
            request.method,
            request.url.path,
            ",".join(sorted(r.value for r in allowed)),
        )
        raise AuthorizationError()


Stage = Callable[[Request, frozenset[Role]], None]

PIPELINE: tuple[Stage, ...] = (authenticate, authorize)


def run_pipeline(request: Request, allowed: frozenset[Role], stages: tuple[Stage, ...] = PIPELINE) -> None:
    for stage in stages:
        stage(request, allowed)


# ---------------------------------------------------------------------------
# Handler-side helpers
# ---------------------------------------------------------------------------


def get_current_claims(request: Request) -> SessionClaims:
    """Return the claims attached by the pipeline. Raises 401 if absent.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: SessionClaims = Depends(get_current_claims)): ...
    """
    claims: SessionClaims | None = getattr(request.state, "claims", None)
    if claims is None:
        raise AuthenticationError()
    return claims


def get_current_user(request: Request) -> User:
    """Load the account behind the current token. Raises 401 if it no longer exists."""
    claims = get_current_claims(request)
    user = request.app.state.user_store.get_by_id(claims.user_id)
    if user is None:
        raise AuthenticationError()
    return user
