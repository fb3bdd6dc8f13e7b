"""
catalog/store.py -- SQLAlchemy Core persistence layer for courses and enrollments.

Pattern: Repository + Data Mapper (same as auth/store.py).

Errors:
  Methods run inside core.db.connect(): the UNIQUE(course_id, student_id)
  constraint surfaces as DuplicateResourceError, a dead database as
  PersistenceError.

Deleting a course deletes its enrollments in the same transaction. Done in
code rather than with ON DELETE CASCADE because SQLite only honours foreign
keys when PRAGMA foreign_keys is on for every connection.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint

from catalog.models import Course, Enrollment
from core.db import connect, make_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_courses = Table(
    "courses",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("instructor_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

_enrollments = Table(
    "enrollments",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("course_id", Integer, nullable=False, index=True),
    Column("student_id", Integer, nullable=False, index=True),
    Column("enrolled_at", String(32), nullable=False),
    UniqueConstraint("course_id", "student_id", name="uq_enrollment_course_student"),
)

_COURSE_FIELDS = {"title", "description"}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    """Repository for Course and Enrollment entities."""

    def __init__(self, db_url: str) -> None:
        self.engine = make_engine(db_url)
        with connect(self.engine) as conn:
            _metadata.create_all(conn)
            conn.commit()

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    def create_course(self, course: Course) -> int:
        with connect(self.engine) as conn:
            result = conn.execute(
                _courses.insert().values(
                    title=course.title,
                    description=course.description,
                    instructor_id=course.instructor_id,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_course(self, course_id: int) -> Course | None:
        with connect(self.engine) as conn:
            row = conn.execute(_courses.select().where(_courses.c.id == course_id)).fetchone()
        return _row_to_course(row) if row is not None else None

    def list_courses(self, instructor_id: int | None = None) -> list[Course]:
        """Return courses ordered by id, optionally only one instructor's."""
        query = _courses.select().order_by(_courses.c.id)
        if instructor_id is not None:
            query = query.where(_courses.c.instructor_id == instructor_id)
        with connect(self.engine) as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_course(r) for r in rows]

    def update_course(self, course_id: int, **fields) -> bool:
        """Update title and/or description. Returns False if course_id not found.

        Raises ValueError for any other field -- instructor_id is fixed at
        creation.
        """
        unknown = set(fields) - _COURSE_FIELDS
        if unknown:
            raise ValueError(f"Not course fields: {sorted(unknown)!r}")
        if not fields:
            return self.get_course(course_id) is not None
        with connect(self.engine) as conn:
            result = conn.execute(_courses.update().where(_courses.c.id == course_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_course(self, course_id: int) -> bool:
        with connect(self.engine) as conn:
            conn.execute(_enrollments.delete().where(_enrollments.c.course_id == course_id))
            result = conn.execute(_courses.delete().where(_courses.c.id == course_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Enrollments
    # ------------------------------------------------------------------

    def enroll(self, course_id: int, student_id: int) -> int:
        """Enroll student_id in course_id. Raises DuplicateResourceError if already enrolled."""
        with connect(self.engine, "Already enrolled in this course.") as conn:
            result = conn.execute(
                _enrollments.insert().values(course_id=course_id, student_id=student_id, enrolled_at=now_iso())
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_enrollment(self, enrollment_id: int) -> Enrollment | None:
        with connect(self.engine) as conn:
            row = conn.execute(_enrollments.select().where(_enrollments.c.id == enrollment_id)).fetchone()
        return _row_to_enrollment(row) if row is not None else None

    def unenroll(self, course_id: int, student_id: int) -> bool:
        with connect(self.engine) as conn:
            result = conn.execute(
                _enrollments.delete().where(
                    (_enrollments.c.course_id == course_id) & (_enrollments.c.student_id == student_id)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def list_enrollments_for_course(self, course_id: int) -> list[Enrollment]:
        with connect(self.engine) as conn:
            rows = conn.execute(
                _enrollments.select().where(_enrollments.c.course_id == course_id).order_by(_enrollments.c.id)
            ).fetchall()
        return [_row_to_enrollment(r) for r in rows]

    def list_enrollments_for_student(self, student_id: int) -> list[Enrollment]:
        with connect(self.engine) as conn:
            rows = conn.execute(
                _enrollments.select().where(_enrollments.c.student_id == student_id).order_by(_enrollments.c.id)
            ).fetchall()
        return [_row_to_enrollment(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_course(row) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        description=row.description,
        instructor_id=row.instructor_id,
        created_at=row.created_at,
    )


def _row_to_enrollment(row) -> Enrollment:
    return Enrollment(
        id=row.id,
        course_id=row.course_id,
        student_id=row.student_id,
        enrolled_at=row.enrolled_at,
    )
