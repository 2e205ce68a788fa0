"""
api/main.py -- FastAPI application entry point for imgshare-auth.

Run with:  uvicorn api.main:app --reload

Lifespan handles startup (engine, stores, services, sweep task) and shutdown
(cancel sweep task, dispose engine) symmetrically.

Services are built once at startup with their dependencies passed in
explicitly and hung on app.state. Route handlers and auth.dependencies read
them from request.app.state -- there are no module-level singletons besides
the Settings cache.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.service import AuthService
from auth.store import SessionStore
from core.config import get_settings
from core.db import create_db_engine
from core.errors import EntropyError, HashingError, ServiceError, StoreTimeout, StoreUnavailable
from users.service import UserService
from users.store import UserStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("imgshare.api")

# Failures of the environment rather than the caller. Logged on every occurrence.
_ENVIRONMENT_ERRORS = (StoreTimeout, StoreUnavailable, EntropyError, HashingError)

# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: float) -> None:
    """Delete expired sessions every `interval` seconds.

    Runs as a background asyncio task started in lifespan startup. Any failed
    sweep is logged and the loop carries on; the next tick retries. Resolve
    already refuses expired sessions, so a missed sweep only costs disk space.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await app.state.auth_service.sweep_expired()
        except Exception:
            logger.exception("session sweep failed")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Engine first -- creates the schema; both stores share its pool.
      2. Stores and services -- wired by constructor injection.
      3. Sweep task last -- references app.state.auth_service.
    """
    settings = get_settings()
    logger.info("imgshare-auth starting up")
    engine = create_db_engine(settings.database_url)
    user_store = UserStore(engine)
    session_store = SessionStore(engine)
    app.state.engine = engine
    app.state.auth_service = AuthService(
        session_store,
        user_store,
        session_lifetime=settings.session_lifetime,
        timeout=settings.store_timeout_seconds,
    )
    app.state.user_service = UserService(
        user_store,
        session_store,
        timeout=settings.store_timeout_seconds,
        default_active=settings.default_user_active,
    )
    logger.info(
        "Auth initialized (session_lifetime=%ss, store_timeout=%ss)",
        settings.session_lifetime_seconds,
        settings.store_timeout_seconds,
    )
    app.state.sweep_task = asyncio.create_task(_sweep_loop(app, settings.sweep_interval_seconds))

    yield

    # Shutdown
    app.state.sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.sweep_task
    engine.dispose()
    logger.info("imgshare-auth shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="imgshare-auth",
    description="Session-based authentication: registration, login, server-side sessions.",
    version=__version__,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map a domain failure to its HTTP status with a fixed public message.

    str(exc) may carry internal context (emails, ids, driver op names); it is
    logged for environment failures and never written to the response.
    """
    if isinstance(exc, _ENVIRONMENT_ERRORS):
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
        )
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )
    if exc.status_code == 401:
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation.

    Only field locations and messages are echoed back, never the input values
    (which may be passwords).
    """
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=problems,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail as a {"code", "message"}
    dict. When detail is already a structured dict, use it directly as the
    error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
