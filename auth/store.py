"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
UserStore is the repository; _row_to_user / _row_to_otp are the mappers.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are normalized to lower case on every write and lookup so
  "Alice@Example.com" and "alice@example.com" cannot register twice.

Errors:
  Every method runs inside core.db.connect(), so a UNIQUE violation surfaces
  as DuplicateResourceError and a dead database as PersistenceError.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, select

from auth.models import OtpPurpose, OtpRecord, Role, User
from core.db import connect, make_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False),
    Column("is_verified", Boolean, nullable=False, server_default="0"),
    Column("full_name", String(255)),
    Column("bio", Text),
    Column("created_at", String(32), nullable=False),
)

# One row per email: issuing a new code replaces the previous one. attempts
# counts wrong guesses against that code.
_otp_codes = Table(
    "otp_codes",
    _metadata,
    Column("email", String(255), primary_key=True),
    Column("code", String(16), nullable=False),
    Column("purpose", String(30), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_PROFILE_FIELDS = {"full_name", "bio"}


def _norm(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and OtpRecord entities.

    Usage:
        store = UserStore("sqlite:///./lmsauth.db")
        uid = store.create_user(User(email="a@b.c", role=Role.student, hashed_password=h))
        user = store.get_by_email("a@b.c")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine = make_engine(db_url)
        with connect(self.engine) as conn:
            _metadata.create_all(conn)
            conn.commit()

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises DuplicateResourceError if the email is already registered. The
        existing record is left untouched -- the INSERT is rejected whole.
        """
        with connect(self.engine, "An account with that email already exists.") as conn:
            result = conn.execute(
                _users.insert().values(
                    email=_norm(user.email),
                    hashed_password=user.hashed_password,
                    role=Role(user.role).value,
                    is_verified=user.is_verified,
                    full_name=user.full_name,
                    bio=user.bio,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        with connect(self.engine) as conn:
            row = conn.execute(_users.select().where(_users.c.email == _norm(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with connect(self.engine) as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, role: Role | None = None) -> list[User]:
        """Return all users ordered by email, optionally filtered by role."""
        query = _users.select().order_by(_users.c.email)
        if role is not None:
            query = query.where(_users.c.role == role.value)
        with connect(self.engine) as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def mark_verified(self, email: str) -> bool:
        """Set is_verified on the account. Returns False if no such account."""
        with connect(self.engine) as conn:
            result = conn.execute(_users.update().where(_users.c.email == _norm(email)).values(is_verified=True))
            conn.commit()
        return result.rowcount > 0

    def update_password(self, email: str, hashed_password: str) -> bool:
        with connect(self.engine) as conn:
            result = conn.execute(
                _users.update().where(_users.c.email == _norm(email)).values(hashed_password=hashed_password)
            )
            conn.commit()
        return result.rowcount > 0

    def update_profile(self, user_id: int, **fields) -> bool:
        """Update profile fields (full_name, bio).

        Email, role, and password are not profile fields and are rejected
        with ValueError -- fail fast rather than silently ignoring a caller
        that tries to change identity through this path.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        with connect(self.engine) as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # OTP queries
    # ------------------------------------------------------------------

    def upsert_otp(self, record: OtpRecord) -> None:
        """Store record as the only pending code for its email.

        Delete-then-insert in one transaction is portable across SQLite and
        Postgres, unlike the dialect-specific ON CONFLICT forms.
        """
        email = _norm(record.email)
        with connect(self.engine) as conn:
            conn.execute(_otp_codes.delete().where(_otp_codes.c.email == email))
            conn.execute(
                _otp_codes.insert().values(
                    email=email,
                    code=record.code,
                    purpose=OtpPurpose(record.purpose).value,
                    expires_at=record.expires_at,
                    attempts=record.attempts,
                    created_at=record.created_at or now_iso(),
                )
            )
            conn.commit()

    def get_otp(self, email: str) -> OtpRecord | None:
        with connect(self.engine) as conn:
            row = conn.execute(_otp_codes.select().where(_otp_codes.c.email == _norm(email))).fetchone()
        return _row_to_otp(row) if row is not None else None

    def record_otp_failure(self, email: str) -> int:
        """Increment the wrong-guess counter on the pending code. Returns the new count.

        The increment happens in SQL so concurrent guesses cannot both read
        the old value. Returns 0 if no code is pending.
        """
        email = _norm(email)
        with connect(self.engine) as conn:
            conn.execute(
                _otp_codes.update()
                .where(_otp_codes.c.email == email)
                .values(attempts=_otp_codes.c.attempts + 1)
            )
            attempts = conn.execute(select(_otp_codes.c.attempts).where(_otp_codes.c.email == email)).scalar()
            conn.commit()
        return attempts or 0

    def delete_otp(self, email: str) -> bool:
        with connect(self.engine) as conn:
            result = conn.execute(_otp_codes.delete().where(_otp_codes.c.email == _norm(email)))
            conn.commit()
        return result.rowcount > 0

    def purge_expired_otps(self, now: str | None = None) -> int:
        """Delete every OTP whose expires_at is at or before now. Returns the count.

        ISO 8601 UTC strings with the same offset sort lexicographically in
        time order, so the comparison can run in SQL.
        """
        cutoff = now or now_iso()
        with connect(self.engine) as conn:
            result = conn.execute(_otp_codes.delete().where(_otp_codes.c.expires_at <= cutoff))
            conn.commit()
        return result.rowcount

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with connect(self.engine) as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        is_verified=bool(row.is_verified),
        full_name=row.full_name,
        bio=row.bio,
        created_at=row.created_at,
    )


def _row_to_otp(row) -> OtpRecord:
    return OtpRecord(
        email=row.email,
        code=row.code,
        purpose=OtpPurpose(row.purpose),
        expires_at=row.expires_at,
        attempts=row.attempts,
        created_at=row.created_at,
    )
