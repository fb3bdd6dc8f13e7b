"""
core/db.py -- SQLAlchemy engine construction and error translation.

Shared by auth/store.py and catalog/store.py so both repositories get the
same SQLite tuning and the same mapping from driver errors to domain errors.

Layer rule: core/ imports nothing from api/, auth/, or catalog/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError

from core.errors import DuplicateResourceError, PersistenceError

logger = logging.getLogger("lmsauth.db")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases ignore the request.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine for db_url.

    SQLite needs check_same_thread=False because FastAPI runs sync route
    handlers in a thread pool and the pool hands connections across threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


@contextmanager
def connect(engine: Engine, duplicate_message: str | None = None) -> Iterator[Connection]:
    """Yield a connection, translating driver errors into domain errors.

    IntegrityError -> DuplicateResourceError (all unique constraints in this
    schema are "already exists" conditions). Any other DBAPIError ->
    PersistenceError. The original exception is chained and logged; its text
    never reaches the client.
    """
    try:
        with engine.connect() as conn:
            yield conn
    except IntegrityError as exc:
        raise DuplicateResourceError(duplicate_message) from exc
    except DBAPIError as exc:
        logger.error("Database error: %s", exc.__class__.__name__, exc_info=exc)
        raise PersistenceError() from exc


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
