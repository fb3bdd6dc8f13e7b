"""
api/routes/v1/courses.py -- Course CRUD.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /courses               -- create; caller becomes the instructor
  GET    /courses               -- list all, ?instructor_id= filter
  GET    /courses/{course_id}   -- detail
  PATCH  /courses/{course_id}   -- edit title/description
  DELETE /courses/{course_id}   -- delete course and its enrollments

Role gating lives in api/policy.py. On top of that, an instructor may only
edit or delete courses they own; admins may edit any course. That ownership
check is per-record so it cannot live in the static policy table.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.models import CourseCreate, CoursePatch, CourseResponse
from auth.dependencies import get_current_claims
from auth.models import Role, SessionClaims
from catalog.models import Course
from catalog.store import CatalogStore
from core.errors import AuthorizationError, NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Courses"])


def load_course(catalog: CatalogStore, course_id: int) -> Course:
    course = catalog.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found.")
    return course


def require_course_owner(claims: SessionClaims, course: Course) -> None:
    """Admins pass; instructors must own the course."""
    if claims.role == Role.admin:
        return
    if course.instructor_id != claims.user_id:
        raise AuthorizationError("Only the course's instructor can do that.")


@router.post("/courses", response_model=CourseResponse, status_code=201)
def create_course(
    request: Request,
    body: CourseCreate,
    claims: SessionClaims = Depends(get_current_claims),
) -> CourseResponse:
    catalog: CatalogStore = request.app.state.catalog
    course_id = catalog.create_course(
        Course(title=body.title, description=body.description, instructor_id=claims.user_id)
    )
    return CourseResponse.from_course(catalog.get_course(course_id))


@router.get("/courses", response_model=list[CourseResponse])
def list_courses(request: Request, instructor_id: Optional[int] = None) -> list[CourseResponse]:
    catalog: CatalogStore = request.app.state.catalog
    return [CourseResponse.from_course(c) for c in catalog.list_courses(instructor_id)]


@router.get("/courses/{course_id}", response_model=CourseResponse)
def get_course(request: Request, course_id: int) -> CourseResponse:
    return CourseResponse.from_course(load_course(request.app.state.catalog, course_id))


@router.patch("/courses/{course_id}", response_model=CourseResponse)
def update_course(
    request: Request,
    course_id: int,
    body: CoursePatch,
    claims: SessionClaims = Depends(get_current_claims),
) -> CourseResponse:
    catalog: CatalogStore = request.app.state.catalog
    require_course_owner(claims, load_course(catalog, course_id))
    catalog.update_course(course_id, **body.model_dump(exclude_unset=True, exclude_none=True))
    return CourseResponse.from_course(catalog.get_course(course_id))


@router.delete("/courses/{course_id}", status_code=204)
def delete_course(
    request: Request,
    course_id: int,
    claims: SessionClaims = Depends(get_current_claims),
) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    require_course_owner(claims, load_course(catalog, course_id))
    catalog.delete_course(course_id)
    return Response(status_code=204)
