"""
auth/service.py -- Session lifecycle: login, resolve, logout, revocation, sweep.

Session validity is a small state machine:

    NoSession --login--> Authenticated --(expires_on passes)--> Expired
                                       --(logout / revoke)----> Revoked

Expired and Revoked are both "row gone or unusable"; resolve() turns either
into SessionNotFound (SessionExpired is a subclass of it).

Security:
  login() never distinguishes an unknown email from a wrong password. Both
  raise InvalidCredentials, and both pay for one bcrypt verification (the
  unknown-email path verifies against DUMMY_HASH) so response time does not
  leak which emails are registered.

  Token generation failures (EntropyError) propagate. A session is never
  created with a weaker token.

Concurrency:
  Store calls go through core.db.call_store (worker thread + timeout budget).
  bcrypt runs in a worker thread. No state is cached between calls; every
  resolve() round-trips to the store.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from auth.models import Session
from auth.passwords import DUMMY_HASH, verify_password
from auth.store import SessionStore
from auth.tokens import generate_token
from core.db import call_store, utcnow
from core.errors import InvalidCredentials, SessionExpired, SessionNotFound, UserNotFound
from users.models import User
from users.store import UserStore

logger = logging.getLogger("imgshare.auth")


class AuthService:
    """Orchestrates credential checks and the session lifecycle.

    Args:
        session_store:    Repository for sessions.
        user_store:       Repository for users (login lookup, session owner lookup).
        session_lifetime: Fixed duration added to "now" for every new session.
        timeout:          Default per-call store budget in seconds. Every public
                          method also accepts a timeout= override.
        clock:            Returns the current UTC time. Injected for tests.
    """

    def __init__(
        self,
        session_store: SessionStore,
        user_store: UserStore,
        *,
        session_lifetime: timedelta,
        timeout: float,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessions = session_store
        self._users = user_store
        self._lifetime = session_lifetime
        self._timeout = timeout
        self._clock = clock

    @property
    def session_lifetime(self) -> timedelta:
        return self._lifetime

    async def _store(self, op: str, fn, *args, timeout: float | None = None):
        return await call_store(op, fn, *args, timeout=self._timeout if timeout is None else timeout)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str, *, timeout: float | None = None) -> Session:
        """Verify credentials and mint a new session.

        Raises InvalidCredentials for an unknown email, a wrong password, or
        an inactive account -- the three are indistinguishable to the caller.
        """
        user = await self._store("users.get_by_email", self._users.get_by_email, email, timeout=timeout)
        if user is None:
            await asyncio.to_thread(verify_password, password, DUMMY_HASH)
            raise InvalidCredentials()
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise InvalidCredentials()
        if not user.is_active:
            raise InvalidCredentials()
        session = await self.create_session(user.id, timeout=timeout)
        logger.info("login user_id=%s", user.id)
        return session

    async def create_session(self, user_id: uuid.UUID, *, timeout: float | None = None) -> Session:
        """Mint and persist a session for user_id, expiring now + session_lifetime."""
        session = Session(
            id=generate_token(),
            user_id=user_id,
            expires_on=self._clock() + self._lifetime,
        )
        return await self._store("sessions.create", self._sessions.create_session, session, timeout=timeout)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def get_session(self, token: str, *, timeout: float | None = None) -> Session:
        """Return the live session for token.

        Raises SessionNotFound if absent. An expired session is deleted on
        the spot (lazy expiry) and SessionExpired is raised.
        """
        session = await self._store("sessions.get", self._sessions.get_session, token, timeout=timeout)
        if session is None:
            raise SessionNotFound()
        now = self._clock()
        if session.is_expired(now):
            await self._store("sessions.delete_if_expired", self._sessions.delete_if_expired, token, now, timeout=timeout)
            raise SessionExpired()
        return session

    async def resolve(self, token: str, *, timeout: float | None = None) -> User:
        """Return the user owning a live session.

        Raises SessionNotFound / SessionExpired as get_session() does, and
        UserNotFound if the session outlived its user (orphaned row).
        """
        session = await self.get_session(token, timeout=timeout)
        user = await self._store("users.get_by_id", self._users.get_by_id, session.user_id, timeout=timeout)
        if user is None:
            logger.warning("orphaned session for missing user_id=%s", session.user_id)
            raise UserNotFound(str(session.user_id))
        return user

    async def list_sessions(self, user_id: uuid.UUID, *, timeout: float | None = None) -> list[Session]:
        """Return the user's non-expired sessions, latest expiry first."""
        return await self._store(
            "sessions.list_for_user", self._sessions.list_for_user, user_id, self._clock(), timeout=timeout
        )

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    async def logout(self, token: str, *, timeout: float | None = None) -> None:
        """Delete the session. Deleting an unknown token is not an error."""
        await self._store("sessions.delete", self._sessions.delete_session, token, timeout=timeout)

    async def revoke_all_for_user(
        self,
        user_id: uuid.UUID,
        except_tokens: Iterable[str] = (),
        *,
        timeout: float | None = None,
    ) -> int:
        """Delete every session of user_id except the tokens in except_tokens.

        One DELETE statement; once this returns, no other session of the user
        that existed before the call can resolve. Returns the count revoked.
        """
        keep = frozenset(except_tokens)
        count = await self._store(
            "sessions.delete_for_user", self._sessions.delete_for_user, user_id, keep, timeout=timeout
        )
        logger.info("revoked %d session(s) for user_id=%s (kept %d)", count, user_id, len(keep))
        return count

    async def sweep_expired(self, *, timeout: float | None = None) -> int:
        """Delete all sessions that expired before now. Returns the count.

        Meant for the periodic background task, not the request path.
        """
        count = await self._store("sessions.delete_expired", self._sessions.delete_expired, self._clock(), timeout=timeout)
        if count:
            logger.info("swept %d expired session(s)", count)
        return count
