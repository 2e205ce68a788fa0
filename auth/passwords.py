"""
auth/passwords.py -- Password hashing and verification (bcrypt).

Security design decisions:
  bcrypt directly, no passlib wrapper. gensalt() draws a fresh random salt on
  every call, so hashing the same password twice yields different strings.
  The cost factor comes from Settings.bcrypt_rounds (BCRYPT_ROUNDS).

  verify_password() never raises. bcrypt.checkpw compares digests in constant
  time; anything malformed (garbage hash, empty strings, over-long input) is
  simply a failed verification.

  DUMMY_HASH enables timing equalization in AuthService.login() so the
  response time does not reveal whether an email is registered.

Both functions are CPU-bound and deliberately slow. Async callers must run
them in a worker thread (asyncio.to_thread), never on the event loop.
"""

from __future__ import annotations

import logging

import bcrypt

from core.config import get_settings
from core.errors import HashingError

logger = logging.getLogger("imgshare.auth")

# bcrypt only looks at the first 72 bytes; bcrypt>=5 refuses longer input.
MAX_PASSWORD_BYTES = 72

_ROUNDS = get_settings().bcrypt_rounds


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises HashingError for input over 72 bytes (never truncated), when
    bcrypt rejects the input, or when the salt cannot be generated.
    """
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        raise HashingError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    try:
        salt = bcrypt.gensalt(rounds=_ROUNDS)
        return bcrypt.hashpw(secret, salt).decode("utf-8")
    except (ValueError, TypeError, OSError) as exc:
        logger.error("password hashing failed: %s", type(exc).__name__)
        raise HashingError("bcrypt could not hash the password") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not plain or not hashed:
        return False
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, hashed.encode("utf-8"))
    except Exception:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_password("imgshare_timing_dummy")
