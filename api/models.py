"""
API request and response models for the imgshare-auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in users/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

No response model has a password or password hash field.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.passwords import MAX_PASSWORD_BYTES
from users.models import PublicUser

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: deliverability is not checked, only the obvious shape.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Only the email is trimmed. Passwords are compared byte for byte, surrounding
# whitespace included.
Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=320, pattern=EMAIL_PATTERN)]


def _check_password_bytes(value: str) -> str:
    """bcrypt only accepts 72 bytes. Reject longer input instead of truncating."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    """Request body for POST /auth/login (and base of Registration).

    email is not lowercased: emails are stored and matched exactly.
    """

    model_config = ConfigDict(extra="forbid")

    email: Email
    password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class Registration(Credentials):
    """Request body for POST /auth/register. Login accepts any length; new passwords need 8+."""

    password: str = Field(min_length=8)


class PasswordChange(BaseModel):
    """Request body for POST /users/me/password."""

    model_config = ConfigDict(extra="forbid")

    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)

    @field_validator("old_password", "new_password")
    @classmethod
    def passwords_fit_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class UserPatch(BaseModel):
    """Request body for PATCH /users/me. Unknown keys are a 422, not ignored."""

    model_config = ConfigDict(extra="forbid")

    email: Optional[Email] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public user record."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str
    is_active: bool
    created_at: Optional[datetime]

    @classmethod
    def from_user(cls, user: PublicUser) -> "UserResponse":
        return cls(id=user.id, email=user.email, is_active=user.is_active, created_at=user.created_at)


class LoginResponse(BaseModel):
    """Response for POST /auth/login. The token itself is only in the cookie."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    expires_on: datetime


class SessionRow(BaseModel):
    """One entry in GET /auth/sessions.

    Only a short prefix of the token is returned; the full value is a bearer
    credential and never leaves the server except in the owner's cookie.
    """

    model_config = ConfigDict(frozen=True)

    token_prefix: str
    expires_on: datetime
    current: bool


class RevokeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    revoked: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
