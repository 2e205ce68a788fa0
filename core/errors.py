"""
core/errors.py -- Failure taxonomy shared by the services and the API layer.

Every failure a service can raise is a ServiceError subclass carrying the HTTP
status and machine-readable code the API returns for it. The message is a fixed
public string; whatever text the underlying cause had (driver errors, bcrypt
errors) stays in the logs and never reaches the client.

Layer rule: no imports from api/, auth/, or users/.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for all domain failures."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class UserNotFound(NotFound):
    code = "user_not_found"
    message = "User not found."


class SessionNotFound(NotFound):
    code = "session_not_found"
    message = "Session not found."


class SessionExpired(SessionNotFound):
    """A session that existed but is past expires_on.

    Subclasses SessionNotFound so callers that only care about "no usable
    session" handle both with one except clause.
    """

    status_code = 401
    code = "session_expired"
    message = "Session expired."


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------


class InvalidCredentials(ServiceError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password."


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"
    message = "Conflicting resource."


class DuplicateEmail(Conflict):
    code = "duplicate_email"
    message = "A user with that email already exists."


class PasswordMismatch(ServiceError):
    status_code = 400
    code = "password_mismatch"
    message = "Current password is incorrect."


class InvalidUpdate(ServiceError):
    status_code = 400
    code = "invalid_update"
    message = "Update contains unknown or invalid fields."


# ---------------------------------------------------------------------------
# Environment failures -- always logged, never retried in the request path
# ---------------------------------------------------------------------------


class StoreTimeout(ServiceError):
    status_code = 503
    code = "store_timeout"
    message = "The data store did not respond in time."


class StoreUnavailable(ServiceError):
    status_code = 503
    code = "store_unavailable"
    message = "The data store is unavailable."


class EntropyError(ServiceError):
    code = "entropy_error"


class HashingError(ServiceError):
    code = "hashing_error"
