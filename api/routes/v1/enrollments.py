"""
api/routes/v1/enrollments.py -- Student enrollment endpoints.

Routes:
  POST   /courses/{course_id}/enrollments      -- enroll the calling student
  DELETE /courses/{course_id}/enrollments/me   -- drop the course
  GET    /courses/{course_id}/enrollments      -- roster (owning instructor or admin)
  GET    /enrollments/me                       -- the calling student's enrollments

Students act only on themselves: the student id always comes from the token,
never from the request body, so one student cannot enroll or drop another.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import EnrollmentResponse
from api.routes.v1.courses import load_course, require_course_owner
from auth.dependencies import get_current_claims
from auth.models import SessionClaims
from catalog.store import CatalogStore
from core.errors import NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Enrollments"])


@router.post("/courses/{course_id}/enrollments", response_model=EnrollmentResponse, status_code=201)
def enroll(
    request: Request,
    course_id: int,
    claims: SessionClaims = Depends(get_current_claims),
) -> EnrollmentResponse:
    """Enroll the caller. 404 if the course does not exist, 409 if already enrolled."""
    catalog: CatalogStore = request.app.state.catalog
    load_course(catalog, course_id)
    enrollment_id = catalog.enroll(course_id, claims.user_id)
    return EnrollmentResponse.from_enrollment(catalog.get_enrollment(enrollment_id))


@router.delete("/courses/{course_id}/enrollments/me", status_code=204)
def unenroll(
    request: Request,
    course_id: int,
    claims: SessionClaims = Depends(get_current_claims),
) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    if not catalog.unenroll(course_id, claims.user_id):
        raise NotFoundError("Enrollment not found.")
    return Response(status_code=204)


@router.get("/courses/{course_id}/enrollments", response_model=list[EnrollmentResponse])
def list_course_enrollments(
    request: Request,
    course_id: int,
    claims: SessionClaims = Depends(get_current_claims),
) -> list[EnrollmentResponse]:
    catalog: CatalogStore = request.app.state.catalog
    require_course_owner(claims, load_course(catalog, course_id))
    return [EnrollmentResponse.from_enrollment(e) for e in catalog.list_enrollments_for_course(course_id)]


@router.get("/enrollments/me", response_model=list[EnrollmentResponse])
def list_my_enrollments(
    request: Request,
    claims: SessionClaims = Depends(get_current_claims),
) -> list[EnrollmentResponse]:
    catalog: CatalogStore = request.app.state.catalog
    return [EnrollmentResponse.from_enrollment(e) for e in catalog.list_enrollments_for_student(claims.user_id)]
