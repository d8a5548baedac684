"""
tests/conftest.py -- Shared test fixtures.

This module provides:
  - stores / signer / service: unit-level fixtures over an in-memory SQLite
    engine and a fast bcrypt work factor
  - make_user(): helper that signs a user up through the service
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: The API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit fixtures stay on one thread, so plain :memory: is fine
there.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.service import SessionService
from auth.store import RefreshTokenStore, UserStore, make_engine
from auth.tokens import TokenSigner

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"
FAST_ROUNDS = 4
STRONG_PASSWORD = "Str0ng!Pwd"


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = make_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine=engine)


@pytest.fixture
def refresh_store(engine) -> RefreshTokenStore:
    return RefreshTokenStore(engine=engine)


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(TEST_SECRET)


@pytest.fixture
def service(user_store: UserStore, refresh_store: RefreshTokenStore, signer: TokenSigner) -> SessionService:
    """SessionService wired to in-memory stores with the minimum bcrypt cost."""
    return SessionService(user_store, refresh_store, signer, bcrypt_rounds=FAST_ROUNDS)


@pytest.fixture
def make_user(service: SessionService):
    """Factory: sign a user up and return the SignupResult."""

    def _make(email: str = "a@x.com", name: str = "alice1", password: str = STRONG_PASSWORD):
        return service.signup(email, name, password)

    return _make


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, refresh_store: RefreshTokenStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores and a fast-hashing service into app.state
    so routes see an isolated database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.refresh_store = refresh_store
        app.state.session_service = SessionService(
            user_store,
            refresh_store,
            TokenSigner(TEST_SECRET),
            bcrypt_rounds=FAST_ROUNDS,
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by an isolated shared-memory database.

    One client per test module; tests use distinct emails to stay independent.
    """
    engine = make_engine("sqlite:///file:test_sessionauth_api?mode=memory&cache=shared&uri=true")
    user_store = UserStore(engine=engine)
    refresh_store = RefreshTokenStore(engine=engine)

    app.router.lifespan_context = _patch_lifespan(user_store, refresh_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    engine.dispose()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Clear slowapi counters so login-heavy tests do not hit the limit."""
    limiter.reset()
    yield
