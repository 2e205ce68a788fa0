"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

The session token travels in the SESSION_COOKIE_NAME cookie. Every helper
here resolves it through AuthService on each request; nothing is cached.

get_current_session() yields the live Session (routes that need the token
itself, e.g. "revoke all but this one").
get_current_user() yields the owning User and rejects inactive accounts.

Missing cookie, unknown token, expired token, and orphaned session all map to
the same 401 -- clients cannot tell which one happened.

Store/timeout failures are NOT turned into 401: they propagate to the
ServiceError handler in api/main.py and become 503.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Session
from auth.service import AuthService
from auth.tokens import SESSION_COOKIE_NAME
from core.errors import SessionNotFound, UserNotFound
from users.models import User

_UNAUTHORIZED = {"code": "unauthorized", "message": "Authentication required."}


def _session_token(request: Request) -> str:
    token = request.cookies.get(SESSION_COOKIE_NAME, "")
    if not token:
        raise HTTPException(status_code=401, detail=_UNAUTHORIZED)
    return token


async def get_current_session(request: Request) -> Session:
    """Require a live session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.post("/protected")
        async def route(session: Session = Depends(get_current_session)): ...
    """
    auth_service: AuthService = request.app.state.auth_service
    try:
        return await auth_service.get_session(_session_token(request))
    except SessionNotFound as exc:
        raise HTTPException(status_code=401, detail=_UNAUTHORIZED) from exc


async def get_current_user(request: Request) -> User:
    """Require an authenticated, active user. Raises HTTP 401 otherwise."""
    auth_service: AuthService = request.app.state.auth_service
    try:
        user = await auth_service.resolve(_session_token(request))
    except (SessionNotFound, UserNotFound) as exc:
        raise HTTPException(status_code=401, detail=_UNAUTHORIZED) from exc
    if not user.is_active:
        raise HTTPException(status_code=401, detail=_UNAUTHORIZED)
    return user
