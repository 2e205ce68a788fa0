"""
api/routes/v1/users.py -- Self-service account endpoints.

Routes:
  PATCH  /api/v1/users/me           -- change email
  POST   /api/v1/users/me/password  -- change password; other sessions revoked
  DELETE /api/v1/users/me           -- delete account; sessions cascade

All routes require a live session (get_current_session).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import PasswordChange, UserPatch, UserResponse
from auth.dependencies import get_current_session, get_current_user
from auth.models import Session
from auth.tokens import clear_session_cookie
from users.models import User
from users.service import UserService

router = APIRouter()


@router.patch("/users/me", response_model=UserResponse)
async def update_me(
    request: Request,
    body: UserPatch,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    user_service: UserService = request.app.state.user_service
    updated = await user_service.update(current_user.id, email=body.email)
    return UserResponse.from_user(updated)


@router.post("/users/me/password", status_code=204)
async def change_password(
    request: Request,
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
    current_session: Session = Depends(get_current_session),
) -> Response:
    """Change the caller's password. The session making the request stays valid."""
    user_service: UserService = request.app.state.user_service
    await user_service.change_password(
        current_user.id,
        body.old_password,
        body.new_password,
        keep_session=current_session.id,
    )
    return Response(status_code=204)


@router.delete("/users/me", status_code=204)
async def delete_me(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> Response:
    user_service: UserService = request.app.state.user_service
    await user_service.delete(current_user.id)
    resp = Response(status_code=204)
    clear_session_cookie(resp)
    return resp
