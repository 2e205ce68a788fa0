"""
core/db.py -- Shared SQLAlchemy Core schema and engine factory.

Both repositories (users/store.py and auth/store.py) run against one Engine so
they share a single connection pool. The pool is the only shared mutable state
in the process; SQLAlchemy's pool is safe for concurrent use from worker
threads.

The two tables live on one MetaData because sessions.user_id is a foreign key
into users.id with ON DELETE CASCADE: deleting a user removes its sessions in
the same statement. SQLite only enforces foreign keys when the pragma is set
per connection, so create_db_engine() installs a connect listener for it.

Timestamps are stored as fixed-width UTC ISO 8601 strings (always with
microseconds) so that SQL string comparison orders them chronologically.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from core.errors import Conflict, StoreTimeout, StoreUnavailable

logger = logging.getLogger("imgshare.db")

T = TypeVar("T")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent.parent / 'imgshare_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID, canonical text form
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", String(128), primary_key=True),  # hex token
    Column(
        "user_id",
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("expires_on", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# SQLite connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Without foreign_keys=ON the sessions cascade
    would silently not happen.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str = "") -> Engine:
    """Create the shared Engine and make sure the schema exists.

    Usage:
        engine = create_db_engine()                              # SQLite default
        engine = create_db_engine("postgresql://user:pw@host/db") # PostgreSQL
    """
    db_url = db_url or _DEFAULT_DB_URL
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: datetime) -> str:
    """Render a datetime as the fixed-width UTC string stored in the DB.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Store calls from async code
# ---------------------------------------------------------------------------


async def call_store(op: str, fn: Callable[..., T], *args: Any, timeout: float) -> T:
    """Run a blocking store method in a worker thread under a time budget.

    The repositories are synchronous SQLAlchemy Core code. Running them via
    asyncio.to_thread keeps the event loop free; asyncio.wait_for bounds the
    wait. On timeout the caller gets StoreTimeout immediately. The worker
    thread finishes its statement on its own and its result is discarded.

    Driver errors are logged here with their full text and re-raised as
    StoreTimeout / StoreUnavailable / Conflict, whose public messages are
    fixed strings. Nothing is retried.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)
    except asyncio.TimeoutError as exc:
        logger.error("%s timed out after %.2fs", op, timeout)
        raise StoreTimeout(op) from exc
    except sa_exc.TimeoutError as exc:
        # Connection pool exhausted for longer than the pool's own timeout.
        logger.error("%s could not get a connection: %s", op, exc)
        raise StoreTimeout(op) from exc
    except sa_exc.IntegrityError as exc:
        logger.warning("%s violated a constraint: %s", op, exc)
        raise Conflict(op) from exc
    except sa_exc.SQLAlchemyError as exc:
        logger.error("%s failed: %s", op, exc)
        raise StoreUnavailable(op) from exc
