"""
api/main.py -- FastAPI application factory for LMS Auth.

Install:   pip install -e .
Run with:  python main.py serve
           uvicorn asgi:app --reload

create_app(settings) builds the whole object graph from the Settings it is
given -- hasher, token service, stores, OTP service, mailer -- and hangs it on
app.state. Nothing below this module reads configuration on its own, so tests
build isolated apps from hand-made Settings objects.

Request flow:
  TrustedHostMiddleware -> CORSMiddleware -> log_requests
    -> enforce_route_policy (app-wide dependency; see api/policy.py)
    -> route handler -> store

Lifespan handles startup (stores, expired-OTP purge) and shutdown (dispose
engines) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse
from api.policy import enforce_route_policy, verify_route_policies
from api.routes.v1.auth import router as auth_router
from api.routes.v1.courses import router as courses_router
from api.routes.v1.enrollments import router as enrollments_router
from api.routes.v1.health import router as health_router
from api.routes.v1.users import router as users_router
from auth.mailer import LogOtpMailer, OtpMailer
from auth.otp import OtpService
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from catalog.store import CatalogStore
from core.config import Settings, get_settings
from core.errors import AppError

__version__ = "0.1.0"

logger = logging.getLogger("lmsauth.api")

ROUTERS = (health_router, auth_router, users_router, courses_router, enrollments_router)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup, dispose their engines on shutdown.

    Startup order matters: the OTP service wraps the user store, so the
    store must exist first.
    """
    settings: Settings = app.state.settings
    logger.info("LMS Auth API starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.catalog = CatalogStore(settings.database_url)
    app.state.otp_service = OtpService(
        app.state.user_store,
        length=settings.otp_length,
        expire_seconds=settings.otp_expire_seconds,
        max_attempts=settings.otp_max_attempts,
    )
    app.state.otp_service.purge_expired()
    logger.info("Stores initialized")

    yield

    app.state.catalog.close()
    app.state.user_store.close()
    logger.info("LMS Auth API shutdown complete")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    otp_mailer: OtpMailer | None = None,
    hasher: PasswordHasher | None = None,
) -> FastAPI:
    """Build a fully wired application.

    Args:
        settings:   Configuration; defaults to get_settings() (environment).
        otp_mailer: OTP delivery; defaults to LogOtpMailer.
        hasher:     Password hasher; tests pass a low-cost one.
    """
    settings = settings or get_settings()
    _configure_logging(settings.log_level)

    app = FastAPI(
        title="LMS Auth API",
        description="Authentication and role-based access control for an e-learning backend.",
        version=__version__,
        lifespan=lifespan,
        # The policy gate runs before every API route, ahead of route-level dependencies.
        dependencies=[Depends(enforce_route_policy)],
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.hasher = hasher or PasswordHasher()
    app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
    app.state.otp_mailer = otp_mailer or LogOtpMailer(debug=settings.debug)

    # -----------------------------------------------------------------------
    # Middleware stack -- register in the order a request meets them.
    # -----------------------------------------------------------------------

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "POST", "PATCH", "DELETE"],
            allow_headers=["Content-Type", "Authorization"],
            max_age=3600,
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    # Each router carries the /api/v1 prefix itself, so route.path is the full
    # template the policy table is keyed on however FastAPI mounts it.
    for router in ROUTERS:
        app.include_router(router)

    _register_exception_handlers(app)

    # Refuse to build an app with an ungated route.
    verify_route_policies(ROUTERS)
    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Render a domain error with its own status and code.

        exc.__cause__ (driver errors, jose errors) is never included.
        """
        if exc.status_code >= 500:
            logger.warning("%s on %s %s", exc.__class__.__name__, request.method, request.url.path)
        return _error_response(exc.status_code, exc.code, exc.message, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 with structured error when request body or query params fail validation.

        Only field locations and messages are echoed -- never the submitted
        input, which may contain a password.
        """
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
        )
        return _error_response(422, "validation_error", "Request validation failed.", problems)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler for unexpected server errors.

        The raw exception goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "internal_error", "An unexpected error occurred.")
