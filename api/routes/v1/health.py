"""
api/routes/v1/health.py -- Liveness endpoint.

Routes:
  GET /api/v1/health -- app status plus a trivial database round-trip

Public: never gated, so load balancers can probe it without a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from api.models import HealthResponse
from core.errors import PersistenceError

router = APIRouter(prefix="/api/v1", tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except PersistenceError:
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=request.app.version,
        components={"app": "ok", "database": database},
    )
