"""
api/policy.py -- Declarative route -> allowed-roles table and the access gate.

Every API route is listed in ROUTE_POLICIES keyed by (method, path template).
The value is either PUBLIC (no stages run) or the frozenset of roles allowed
through. Membership only -- admin is not implied by anything.

enforce_route_policy is installed as an app-wide dependency in api/main.py,
so it runs before any route-level dependency or handler. It looks up the
matched route's entry and runs the auth pipeline from auth/dependencies.py.

verify_route_policies(routers) runs when the app is built and refuses to
start if a route has no entry or an entry names no route. Every router is
built with prefix="/api/v1", so route.path is the full template both there
and in scope["route"] at request time. A new endpoint cannot ship without
someone deciding who may call it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import APIRouter, Request
from fastapi.routing import APIRoute

from auth.dependencies import run_pipeline
from auth.models import Role
from core.errors import AuthorizationError

logger = logging.getLogger("lmsauth.api.policy")

PUBLIC: frozenset[Role] | None = None

ANY_ROLE = frozenset(Role)
ADMIN = frozenset({Role.admin})
STAFF = frozenset({Role.admin, Role.instructor})
STUDENT = frozenset({Role.student})

_V1 = "/api/v1"

ROUTE_POLICIES: dict[tuple[str, str], frozenset[Role] | None] = {
    # Health
    ("GET", f"{_V1}/health"): PUBLIC,
    # Auth
    ("POST", f"{_V1}/auth/register"): PUBLIC,
    ("POST", f"{_V1}/auth/login"): PUBLIC,
    ("POST", f"{_V1}/auth/verify-otp"): PUBLIC,
    ("POST", f"{_V1}/auth/resend-otp"): PUBLIC,
    ("POST", f"{_V1}/auth/password-reset/request"): PUBLIC,
    ("POST", f"{_V1}/auth/password-reset/confirm"): PUBLIC,
    ("GET", f"{_V1}/auth/me"): ANY_ROLE,
    # Users
    ("GET", f"{_V1}/users/me"): ANY_ROLE,
    ("PATCH", f"{_V1}/users/me"): ANY_ROLE,
    ("GET", f"{_V1}/users"): ADMIN,
    ("GET", f"{_V1}/users/{{user_id}}"): ADMIN,
    # Courses
    ("POST", f"{_V1}/courses"): STAFF,
    ("GET", f"{_V1}/courses"): ANY_ROLE,
    ("GET", f"{_V1}/courses/{{course_id}}"): ANY_ROLE,
    ("PATCH", f"{_V1}/courses/{{course_id}}"): STAFF,
    ("DELETE", f"{_V1}/courses/{{course_id}}"): STAFF,
    # Enrollments
    ("POST", f"{_V1}/courses/{{course_id}}/enrollments"): STUDENT,
    ("DELETE", f"{_V1}/courses/{{course_id}}/enrollments/me"): STUDENT,
    ("GET", f"{_V1}/courses/{{course_id}}/enrollments"): STAFF,
    ("GET", f"{_V1}/enrollments/me"): STUDENT,
}


def policy_for(method: str, path: str) -> frozenset[Role] | None:
    """Return the policy for (method, path). Raises KeyError if undeclared."""
    if method == "HEAD":
        method = "GET"
    return ROUTE_POLICIES[(method, path)]


def enforce_route_policy(request: Request) -> None:
    """App-wide dependency: gate the matched route according to ROUTE_POLICIES.

    An undeclared route is denied (fail closed). verify_route_policies makes
    that unreachable for routes registered through create_app().
    """
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    try:
        allowed = policy_for(request.method, path)
    except KeyError:
        logger.error("No access policy declared for %s %s -- denying", request.method, path)
        raise AuthorizationError() from None
    if allowed is PUBLIC:
        return
    run_pipeline(request, allowed)


def verify_route_policies(routers: Iterable[APIRouter], policies: dict | None = None) -> None:
    """Raise RuntimeError unless the routers' routes and policy entries match one-to-one.

    Reads the routers themselves rather than app.routes: how an included
    router shows up in app.routes differs between FastAPI releases, while an
    APIRouter built with a prefix always stores the full path on its routes.
    """
    table = ROUTE_POLICIES if policies is None else policies
    registered = {
        (method, route.path)
        for router in routers
        for route in router.routes
        if isinstance(route, APIRoute)
        for method in route.methods
        if method != "HEAD"
    }
    missing = registered - set(table)
    stale = set(table) - registered
    problems = []
    if missing:
        problems.append(f"routes without a policy: {sorted(missing)}")
    if stale:
        problems.append(f"policies without a route: {sorted(stale)}")
    if problems:
        raise RuntimeError("Route policy table out of sync -- " + "; ".join(problems))
