"""
users/service.py -- Registration, password change, and account management.

Every public method returns PublicUser (never the password hash) or nothing.

Password change and deactivation revoke the user's sessions. A stolen session
must not outlive the credential change that was meant to lock the thief out.
change_password() can keep the caller's own session alive via keep_session.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from auth.passwords import hash_password, verify_password
from auth.store import SessionStore
from core.db import call_store, utcnow
from core.errors import DuplicateEmail, PasswordMismatch, StoreTimeout, StoreUnavailable, UserNotFound
from users.models import PublicUser, User, UserUpdate
from users.store import UserStore

logger = logging.getLogger("imgshare.users")


class UserService:
    """Orchestrates user account operations.

    Args:
        user_store:     Repository for users.
        session_store:  Repository for sessions (revocation on credential change).
        timeout:        Default per-call store budget in seconds.
        clock:          Returns the current UTC time.
        default_active: is_active value for newly registered users.
    """

    def __init__(
        self,
        user_store: UserStore,
        session_store: SessionStore,
        *,
        timeout: float,
        clock: Callable[[], datetime] = utcnow,
        default_active: bool = True,
    ) -> None:
        self._users = user_store
        self._sessions = session_store
        self._timeout = timeout
        self._clock = clock
        self._default_active = default_active

    async def _store(self, op: str, fn, *args, timeout: float | None = None):
        return await call_store(op, fn, *args, timeout=self._timeout if timeout is None else timeout)

    async def _require(self, user_id: uuid.UUID, timeout: float | None) -> User:
        user = await self._store("users.get_by_id", self._users.get_by_id, user_id, timeout=timeout)
        if user is None:
            raise UserNotFound(str(user_id))
        return user

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str, *, timeout: float | None = None) -> PublicUser:
        """Create an account. Raises DuplicateEmail if the email is taken.

        The pre-check gives a fast answer for the common case; the store's
        UNIQUE constraint catches the race where two registrations for one
        email both pass it.
        """
        existing = await self._store("users.get_by_email", self._users.get_by_email, email, timeout=timeout)
        if existing is not None:
            raise DuplicateEmail(email)
        password_hash = await asyncio.to_thread(hash_password, password)
        user = User(
            id=uuid.uuid4(),
            email=email,
            password_hash=password_hash,
            is_active=self._default_active,
            created_at=self._clock(),
        )
        created = await self._store("users.create", self._users.create_user, user, timeout=timeout)
        logger.info("registered user_id=%s", created.id)
        return created.to_public()

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def change_password(
        self,
        user_id: uuid.UUID,
        old_password: str,
        new_password: str,
        *,
        keep_session: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Replace the password after verifying the current one.

        Only password_hash changes. Afterwards every session of the user is
        revoked except keep_session (typically the caller's own).

        The update and the revocation are two store calls. If the revocation
        fails (StoreTimeout, StoreUnavailable) the new password is already in
        place but the old sessions are still live. The failure is logged at
        ERROR and re-raised; retrying the same call is not possible because the
        old password no longer verifies, so callers recover with
        AuthService.revoke_all_for_user().
        """
        user = await self._require(user_id, timeout)
        if not await asyncio.to_thread(verify_password, old_password, user.password_hash):
            raise PasswordMismatch()
        new_hash = await asyncio.to_thread(hash_password, new_password)
        await self._store(
            "users.update", self._users.update_user, user_id, UserUpdate(password_hash=new_hash), timeout=timeout
        )
        keep = [keep_session] if keep_session else []
        try:
            revoked = await self._store(
                "sessions.delete_for_user", self._sessions.delete_for_user, user_id, keep, timeout=timeout
            )
        except (StoreTimeout, StoreUnavailable):
            logger.error("password changed for user_id=%s but its other sessions were NOT revoked", user_id)
            raise
        logger.info("password changed for user_id=%s, %d session(s) revoked", user_id, revoked)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_by_id(self, user_id: uuid.UUID, *, timeout: float | None = None) -> PublicUser:
        return (await self._require(user_id, timeout)).to_public()

    async def get_by_email(self, email: str, *, timeout: float | None = None) -> PublicUser:
        user = await self._store("users.get_by_email", self._users.get_by_email, email, timeout=timeout)
        if user is None:
            raise UserNotFound()
        return user.to_public()

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    async def update(
        self,
        user_id: uuid.UUID,
        *,
        email: str | None = None,
        is_active: bool | None = None,
        timeout: float | None = None,
    ) -> PublicUser:
        """Change email and/or active flag. Passwords go through change_password().

        Deactivating an account revokes all of its sessions.
        """
        changes: dict = {}
        if email is not None:
            changes["email"] = email
        if is_active is not None:
            changes["is_active"] = is_active
        update = UserUpdate.from_mapping(changes)
        if not update:
            return await self.get_by_id(user_id, timeout=timeout)
        if email is not None:
            other = await self._store("users.get_by_email", self._users.get_by_email, email, timeout=timeout)
            if other is not None and other.id != user_id:
                raise DuplicateEmail(email)
        updated = await self._store("users.update", self._users.update_user, user_id, update, timeout=timeout)
        if is_active is False:
            await self._store("sessions.delete_for_user", self._sessions.delete_for_user, user_id, (), timeout=timeout)
            logger.info("deactivated user_id=%s, sessions revoked", user_id)
        return updated.to_public()

    async def delete(self, user_id: uuid.UUID, *, timeout: float | None = None) -> None:
        """Delete the account. Its sessions go with it (ON DELETE CASCADE)."""
        deleted = await self._store("users.delete", self._users.delete_user, user_id, timeout=timeout)
        if not deleted:
            raise UserNotFound(str(user_id))
        logger.info("deleted user_id=%s", user_id)
