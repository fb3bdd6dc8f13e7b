"""
catalog/models.py -- Domain dataclasses for courses and enrollments.

These are pure data containers with zero logic. Ownership and enrollment
rules live in the route handlers; persistence lives in catalog/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Course:
    """A course offered by one instructor.

    instructor_id is the user id of the account that created it. Admins may
    create courses too, in which case instructor_id is the admin's id.

    id is None before the record is written to the database.
    """

    title: str
    instructor_id: int
    description: str = ""
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Enrollment:
    """A student's membership in a course. Unique per (course, student)."""

    course_id: int
    student_id: int
    id: Optional[int] = None
    enrolled_at: str = ""  # ISO 8601, set by store on insert
