"""
api/routes/v1/auth.py -- Registration, login/logout, and session management endpoints.

Routes:
  POST /api/v1/auth/register               -- create an account
  POST /api/v1/auth/login                  -- password login; sets session cookie
  POST /api/v1/auth/logout                 -- deletes the session; clears cookie
  GET  /api/v1/auth/me                     -- current user info (requires auth)
  GET  /api/v1/auth/sessions               -- caller's live sessions (requires auth)
  POST /api/v1/auth/sessions/revoke-others -- log out everywhere but here (requires auth)

Security:
  AuthService.login() folds unknown email, wrong password and inactive
  account into one InvalidCredentials -- the handler in api/main.py turns it
  into the same 401 for all three.
  Cache-Control: no-store on login responses.
  Session tokens never appear in response bodies; GET /sessions shows only a prefix.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import (
    Credentials,
    LoginResponse,
    MessageResponse,
    Registration,
    RevokeResponse,
    SessionRow,
    UserResponse,
)
from auth.dependencies import get_current_session, get_current_user
from auth.models import Session
from auth.service import AuthService
from auth.tokens import SESSION_COOKIE_NAME, clear_session_cookie, set_session_cookie
from users.models import User
from users.service import UserService

# Auth policy:
# - POST /api/v1/auth/register:               public
# - POST /api/v1/auth/login:                  public
# - POST /api/v1/auth/logout:                 requires the session cookie (any state)
# - GET  /api/v1/auth/me:                     requires auth (get_current_user)
# - GET  /api/v1/auth/sessions:               requires auth (get_current_user + get_current_session)
# - POST /api/v1/auth/sessions/revoke-others: requires auth (get_current_session)
router = APIRouter()

_TOKEN_PREFIX_LEN = 8


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
async def register(request: Request, body: Registration) -> UserResponse:
    """Create a new account. Duplicate emails get 409 duplicate_email."""
    user_service: UserService = request.app.state.user_service
    user = await user_service.register(body.email, body.password)
    return UserResponse.from_user(user)


@router.post("/auth/login", response_model=LoginResponse)
async def login(request: Request, body: Credentials) -> JSONResponse:
    """Authenticate with email and password; set the session cookie."""
    auth_service: AuthService = request.app.state.auth_service
    session = await auth_service.login(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(user_id=session.user_id, expires_on=session.expires_on).model_dump(mode="json"),
    )
    set_session_cookie(resp, session)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Delete the caller's session and clear the cookie.

    The delete is unconditional: an expired or already-deleted token still
    gets a 200 and a cleared cookie. Only a request without the cookie at
    all is rejected.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME, "")
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "No session to log out of."},
        )
    auth_service: AuthService = request.app.state.auth_service
    await auth_service.logout(token)
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return identity information for the currently authenticated user."""
    return UserResponse.from_user(current_user.to_public())


@router.get("/auth/sessions", response_model=list[SessionRow])
async def list_sessions(
    request: Request,
    current_user: User = Depends(get_current_user),
    current_session: Session = Depends(get_current_session),
) -> list[SessionRow]:
    """List the caller's live sessions, marking the one making this request."""
    auth_service: AuthService = request.app.state.auth_service
    sessions = await auth_service.list_sessions(current_user.id)
    return [
        SessionRow(
            token_prefix=s.id[:_TOKEN_PREFIX_LEN],
            expires_on=s.expires_on,
            current=s.id == current_session.id,
        )
        for s in sessions
    ]


@router.post("/auth/sessions/revoke-others", response_model=RevokeResponse)
async def revoke_other_sessions(
    request: Request,
    current_session: Session = Depends(get_current_session),
) -> RevokeResponse:
    """Revoke every session of the caller except the one making this request."""
    auth_service: AuthService = request.app.state.auth_service
    count = await auth_service.revoke_all_for_user(current_session.user_id, {current_session.id})
    return RevokeResponse(revoked=count)
