"""
API request and response models for LMS Auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.
"""

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from auth.models import Role, User
from auth.passwords import MAX_PASSWORD_BYTES, password_too_long
from catalog.models import Course, Enrollment

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. Real
# deliverability is proven by the OTP round-trip, not by a regex.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_password_bytes(value: str) -> str:
    # max_length counts characters; bcrypt counts bytes.
    if password_too_long(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
    return value


_Email = Annotated[str, Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)]
_Password = Annotated[str, Field(min_length=8, max_length=72), AfterValidator(_check_password_bytes)]
_OtpCode = Annotated[str, Field(min_length=4, max_length=10, pattern=r"^\d+$")]


class _EmailNormalized(BaseModel):
    """Mixin: strip and lower-case the email field before pattern validation.

    No str_strip_whitespace here -- passwords are taken byte-for-byte.
    """

    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def normalize_email(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(_EmailNormalized):
    """Request body for POST /api/v1/auth/register."""

    email: _Email
    password: _Password
    role: Role = Role.student
    full_name: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(_EmailNormalized):
    email: _Email
    # No min_length here: a short wrong password must fail as bad credentials
    # (401), not as a validation error that tells the caller anything.
    password: str = Field(max_length=255)


class VerifyOtpRequest(_EmailNormalized):
    email: _Email
    code: _OtpCode


class EmailOnlyRequest(_EmailNormalized):
    """Request body for resend-otp and password-reset/request."""

    email: _Email


class PasswordResetConfirm(_EmailNormalized):
    email: _Email
    code: _OtpCode
    new_password: _Password


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: Role


class MeResponse(BaseModel):
    """Identity as carried by the token -- no database read involved."""

    user_id: int
    role: Role
    expires_at: int


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: Role
    is_verified: bool
    full_name: Optional[str] = None
    bio: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            is_verified=user.is_verified,
            full_name=user.full_name,
            bio=user.bio,
            created_at=user.created_at or "",
        )


class ProfilePatch(BaseModel):
    """Request body for PATCH /api/v1/users/me. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    full_name: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Courses and enrollments
# ---------------------------------------------------------------------------


class CourseCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)


class CoursePatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)


class CourseResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    instructor_id: int
    created_at: str

    @classmethod
    def from_course(cls, course: Course) -> "CourseResponse":
        return cls(
            id=course.id,
            title=course.title,
            description=course.description,
            instructor_id=course.instructor_id,
            created_at=course.created_at,
        )


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    course_id: int
    student_id: int
    enrolled_at: str

    @classmethod
    def from_enrollment(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            id=enrollment.id,
            course_id=enrollment.course_id,
            student_id=enrollment.student_id,
            enrolled_at=enrollment.enrolled_at,
        )


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
