"""
auth/tokens.py -- Session token generation and session cookie transport.

Security design decisions:
  Tokens: exactly N random bytes (N >= 24, default 24 = 192 bits) from the
       OS CSPRNG via secrets, hex encoded to a fixed 2*N character string.
       Tokens are never derived from user or time data. A short read from the
       entropy source is an EntropyError, never a shorter token.

  Cookie: the raw token travels as SESSION_COOKIE_NAME.
       httponly=True: JS cannot read the cookie (XSS mitigation).
       samesite="lax": not sent on cross-site POST (CSRF mitigation for most cases).
       expires mirrors Session.expires_on so browser and server agree.
       secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timezone
from typing import TYPE_CHECKING

from core.config import MIN_SESSION_TOKEN_BYTES, get_settings
from core.errors import EntropyError

if TYPE_CHECKING:
    from starlette.responses import Response

    from auth.models import Session

logger = logging.getLogger("imgshare.auth")

SESSION_COOKIE_NAME = "session_id"


def _read_entropy(nbytes: int) -> bytes:
    return secrets.token_bytes(nbytes)


def generate_token(nbytes: int | None = None) -> str:
    """Return a new session token of exactly 2 * nbytes hex characters.

    nbytes defaults to Settings.session_token_bytes. Raises ValueError for
    nbytes below 24 and EntropyError if the random source fails or returns
    fewer bytes than requested.
    """
    if nbytes is None:
        nbytes = get_settings().session_token_bytes
    if nbytes < MIN_SESSION_TOKEN_BYTES:
        raise ValueError(f"session tokens need at least {MIN_SESSION_TOKEN_BYTES} bytes, got {nbytes}")
    try:
        raw = _read_entropy(nbytes)
    except (OSError, NotImplementedError) as exc:
        logger.error("entropy source failed: %s", exc)
        raise EntropyError("random source unavailable") from exc
    if len(raw) != nbytes:
        logger.error("entropy source returned %d bytes, expected %d", len(raw), nbytes)
        raise EntropyError(f"expected {nbytes} random bytes, got {len(raw)}")
    return raw.hex()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, session: Session) -> None:
    """Write the session token as an httpOnly cookie expiring with the session."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value=session.id,
        expires=session.expires_on.astimezone(timezone.utc),
        path="/",
        httponly=True,
        samesite="lax",
        secure=get_settings().secure_cookies,
    )


def clear_session_cookie(response: Response) -> None:
    """Tell the browser to drop the session cookie (Max-Age=-1)."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value="",
        max_age=-1,
        path="/",
        httponly=True,
        samesite="lax",
        secure=get_settings().secure_cookies,
    )
