"""
tests/conftest.py -- Shared test fixtures for imgshare-auth.

This module provides:
  - engine:        isolated named shared-memory SQLite engine per test
  - clock:         FakeClock injected into the services so expiry is testable
  - user_store / session_store / auth_service / user_service
  - run:           asyncio.run, for calling the async services from sync tests
  - api_client:    TestClient wired to isolated stores via a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because the services run store calls in worker threads (asyncio.to_thread)
and TestClient runs the app in its own thread. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.

BCRYPT_ROUNDS must be set before any auth module import: auth/passwords.py
reads it at import time, and the minimum cost keeps the suite fast.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any auth/core import so get_settings() picks them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.service import AuthService
from auth.store import SessionStore
from core.db import create_db_engine
from users.service import UserService
from users.store import UserStore

SESSION_LIFETIME = timedelta(hours=24)
STORE_TIMEOUT = 5.0


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_test_engine(name: str) -> Engine:
    """Create an isolated named shared-memory SQLite engine with the schema."""
    return create_db_engine(f"sqlite:///file:test_{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


# ---------------------------------------------------------------------------
# Service-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = make_test_engine("unit")
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def session_store(engine: Engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def auth_service(session_store: SessionStore, user_store: UserStore, clock: FakeClock) -> AuthService:
    return AuthService(
        session_store,
        user_store,
        session_lifetime=SESSION_LIFETIME,
        timeout=STORE_TIMEOUT,
        clock=clock,
    )


@pytest.fixture
def user_service(user_store: UserStore, session_store: SessionStore, clock: FakeClock) -> UserService:
    return UserService(user_store, session_store, timeout=STORE_TIMEOUT, clock=clock)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine):
    """Return an async context manager that replaces the real lifespan.

    Wires services built on the test engine into app.state so TestClient
    routes see an isolated DB. The sweep task is a long-sleeping coroutine
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        user_store = UserStore(engine)
        session_store = SessionStore(engine)
        app.state.engine = engine
        app.state.auth_service = AuthService(
            session_store,
            user_store,
            session_lifetime=SESSION_LIFETIME,
            timeout=STORE_TIMEOUT,
        )
        app.state.user_service = UserService(user_store, session_store, timeout=STORE_TIMEOUT)
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await app.state.sweep_task

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by a fresh in-memory DB.

    Function-scoped: cookie jars and accounts do not leak between tests.
    """
    eng = make_test_engine("api")
    app.router.lifespan_context = _patch_lifespan(eng)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    eng.dispose()
