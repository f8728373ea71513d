"""
tests/conftest.py -- Shared test fixtures for AuthGate unit and integration tests.

This module provides:
  - FakeClock: a controllable clock for session-expiry tests
  - codec / sessions / user_store / engine: isolated core objects for unit tests
  - api_client: TestClient over the real app with an isolated test lifespan

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Each fixture instance gets a unique name so tests never share
users or sessions.

The DEBUG env var must be set before any app import so get_settings()
auto-generates signing secrets in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from uuid import uuid4

# CRITICAL: Set DEBUG before any auth/core/api import so get_settings() can
# auto-generate the token secrets instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_auth_engine
from auth.seed import seed_demo_users
from auth.service import AuthEngine
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings

ACCESS_SECRET = "a" * 32 + "-access-secret-for-tests"
REFRESH_SECRET = "r" * 32 + "-refresh-secret-for-tests"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_codec(access_expire_seconds: int = 900, refresh_expire_seconds: int = 7 * 24 * 3600) -> TokenCodec:
    return TokenCodec(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_expire_seconds=access_expire_seconds,
        refresh_expire_seconds=refresh_expire_seconds,
    )


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def codec() -> TokenCodec:
    return make_codec()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    """In-memory UserStore seeded with the demo accounts (cheap bcrypt rounds)."""
    store = UserStore("sqlite:///:memory:")
    seed_demo_users(store, rounds=4)
    yield store
    store.close()


@pytest.fixture
def engine(user_store: UserStore, codec: TokenCodec) -> AuthEngine:
    return AuthEngine(users=user_store, codec=codec, sessions=InMemorySessionStore())


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires a pre-seeded test user store and a fresh AuthEngine into app.state
    so routes never touch the default on-disk database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.auth_engine = build_auth_engine(settings, user_store)
        yield

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated users and sessions.

    Seeded accounts: demo@example.com / password123 (user) and
    admin@example.com / admin123 (admin).
    """
    db_url = f"sqlite:///file:test_auth_{uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    seed_demo_users(user_store, rounds=4)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
