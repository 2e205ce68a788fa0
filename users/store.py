"""
users/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as auth/store.py).
UserStore is the repository; _row_to_user is the mapper.
Services never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  update_user() only accepts a UserUpdate, whose field set is closed
  (email, password_hash, is_active). Column names therefore never come from
  caller input.

Cascade policy:
  sessions.user_id references users.id ON DELETE CASCADE (see core/db.py).
  delete_user() removes the user and every session it owns atomically.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import uuid

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.db import from_db_time, to_db_time, users, utcnow
from core.errors import DuplicateEmail, UserNotFound
from users.models import User, UserUpdate


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(engine)
        store.create_user(User(email="a@x.com", password_hash=hash_password("secret")))
        user = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, user: User) -> User:
        """Insert a new user and return the stored record.

        Raises DuplicateEmail if the email already exists. The UNIQUE
        constraint is the final arbiter, so two concurrent registrations for
        the same email cannot both succeed even if both passed a pre-check.
        """
        created_at = user.created_at or utcnow()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    users.insert().values(
                        id=str(user.id),
                        email=user.email,
                        password_hash=user.password_hash,
                        is_active=1 if user.is_active else 0,
                        created_at=to_db_time(created_at),
                    )
                )
        except IntegrityError as exc:
            raise DuplicateEmail(user.email) from exc
        return User(
            id=user.id,
            email=user.email,
            password_hash=user.password_hash,
            is_active=user.is_active,
            created_at=from_db_time(to_db_time(created_at)),
        )

    def get_by_id(self, user_id: uuid.UUID) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == str(user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: uuid.UUID, update: UserUpdate) -> User:
        """Apply the present fields of update and return the updated record.

        An empty update is a read. Raises UserNotFound if user_id does not
        exist and DuplicateEmail if a new email collides with another user.
        """
        values = update.present()
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        try:
            with self.engine.begin() as conn:
                if values:
                    result = conn.execute(users.update().where(users.c.id == str(user_id)).values(**values))
                    if result.rowcount == 0:
                        raise UserNotFound(str(user_id))
                row = conn.execute(users.select().where(users.c.id == str(user_id))).fetchone()
        except IntegrityError as exc:
            raise DuplicateEmail(values.get("email", "")) from exc
        if row is None:
            raise UserNotFound(str(user_id))
        return _row_to_user(row)

    def delete_user(self, user_id: uuid.UUID) -> bool:
        """Delete a user and, by cascade, its sessions. Returns False if not found."""
        with self.engine.begin() as conn:
            result = conn.execute(users.delete().where(users.c.id == str(user_id)))
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=uuid.UUID(row.id),
        email=row.email,
        password_hash=row.password_hash,
        is_active=bool(row.is_active),
        created_at=from_db_time(row.created_at),
    )
