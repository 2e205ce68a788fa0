"""
auth/store.py -- SQLAlchemy Core persistence layer for sessions.

Pattern: Repository + Data Mapper (same as users/store.py).
SessionStore is the repository; _row_to_session is the mapper.

Security:
  All queries use bound parameters. No f-strings in SQL. In particular the
  exclusion list of delete_for_user() is expanded by SQLAlchemy into one bound
  parameter per token (NOT IN (?, ?, ...)); token values never reach the
  statement text.

Atomicity:
  Every delete is a single DELETE statement with its full filter in the WHERE
  clause. delete_for_user() in particular never reads then deletes, so a
  session created concurrently for the same user either exists before the
  statement (and is deleted) or is created after it returns.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.engine import Engine

from auth.models import Session
from core.db import from_db_time, sessions, to_db_time


class SessionStore:
    """Repository for Session records.

    Usage:
        store = SessionStore(engine)
        store.create_session(Session(id=token, user_id=uid, expires_on=expiry))
        session = store.get_session(token)
        store.delete_session(token)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_session(self, session: Session) -> Session:
        with self.engine.begin() as conn:
            conn.execute(
                sessions.insert().values(
                    id=session.id,
                    user_id=str(session.user_id),
                    expires_on=to_db_time(session.expires_on),
                )
            )
        return session

    def get_session(self, token: str) -> Session | None:
        """Look up a session by token. Returns None if not found (expired rows included)."""
        with self.engine.connect() as conn:
            row = conn.execute(sessions.select().where(sessions.c.id == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def list_for_user(self, user_id: uuid.UUID, now: datetime | None = None) -> list[Session]:
        """Return a user's sessions, latest expiry first.

        When now is given, sessions already expired at that instant are left out.
        """
        query = sessions.select().where(sessions.c.user_id == str(user_id))
        if now is not None:
            query = query.where(sessions.c.expires_on > to_db_time(now))
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(sessions.c.expires_on.desc())).fetchall()
        return [_row_to_session(r) for r in rows]

    def delete_session(self, token: str) -> bool:
        """Delete one session. Returns False if it did not exist."""
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.id == token))
        return result.rowcount > 0

    def delete_if_expired(self, token: str, now: datetime) -> bool:
        """Delete the session only if it is expired at now. Used for lazy expiry."""
        with self.engine.begin() as conn:
            result = conn.execute(
                sessions.delete().where((sessions.c.id == token) & (sessions.c.expires_on <= to_db_time(now)))
            )
        return result.rowcount > 0

    def delete_for_user(self, user_id: uuid.UUID, exclude: Iterable[str] = ()) -> int:
        """Delete every session of user_id whose token is not in exclude.

        Returns the number of sessions deleted.
        """
        keep = [t for t in exclude if t]
        condition = sessions.c.user_id == str(user_id)
        if keep:
            condition = condition & sessions.c.id.notin_(keep)
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(condition))
        return result.rowcount

    def delete_expired(self, now: datetime) -> int:
        """Delete all sessions with expires_on strictly before now."""
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.expires_on < to_db_time(now)))
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=uuid.UUID(row.user_id),
        expires_on=from_db_time(row.expires_on),
    )
