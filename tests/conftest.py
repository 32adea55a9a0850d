"""
tests/conftest.py -- Shared test fixtures for MarketBoard tests.

This module provides:
  - FakeClock / clock: a controllable time source for the limiter and tokens
  - admin_store / session_store: isolated in-memory stores per test
  - app_env: TestClient wired to test stores, a fake clock and the
    bootstrapped default admin, via a swapped lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each test gets its own uuid-named database so state never leaks.

DEBUG must be set before any app import so get_settings() accepts the test
environment without a production JWT_SECRET. BCRYPT_ROUNDS=4 keeps hashing
fast; the cost factor does not change behaviour.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-marketboard-tests-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.limiter import RateLimiter
from auth.service import AuthService
from auth.store import AdminStore
from auth.tokens import TokenService
from core.config import get_settings
from market.store import SessionStore

TEST_SECRET = "test-secret-key-for-marketboard-tests-0123456789"
DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "ChangeMe2024"
TEST_ROUNDS = 4


class FakeClock:
    """Callable time source; advance() moves it forward without sleeping."""

    def __init__(self, start: float | None = None) -> None:
        self.now = time.time() if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _db_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin_store() -> Generator[AdminStore, None, None]:
    store = AdminStore(_db_url("test_auth"))
    yield store
    store.close()


@pytest.fixture
def session_store() -> Generator[SessionStore, None, None]:
    store = SessionStore(_db_url("test_market"))
    store.seed_defaults()
    yield store
    store.close()


@pytest.fixture
def token_service(clock: FakeClock) -> TokenService:
    return TokenService(TEST_SECRET, lifetime_seconds=24 * 60 * 60, clock=clock)


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(max_attempts=5, window_seconds=15 * 60, clock=clock, sweep_probability=0)


@pytest.fixture
def auth_service(admin_store: AdminStore, token_service: TokenService, limiter: RateLimiter) -> AuthService:
    return AuthService(admin_store, token_service, limiter, bcrypt_rounds=TEST_ROUNDS)


@dataclass
class AppEnv:
    client: TestClient
    clock: FakeClock
    admin_store: AdminStore
    session_store: SessionStore
    token_service: TokenService
    limiter: RateLimiter

    def login(self, username: str = DEFAULT_USERNAME, password: str = DEFAULT_PASSWORD):
        return self.client.post("/api/v1/auth/login", json={"username": username, "password": password})

    def admin_token(self) -> str:
        user = self.admin_store.get_by_username(DEFAULT_USERNAME)
        return self.token_service.issue(user.id, user.username)


def _patch_lifespan(state: dict):
    """Return a lifespan that installs pre-built test collaborators on app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        for name, value in state.items():
            setattr(app.state, name, value)
        await app.state.auth_service.ensure_default_admin(DEFAULT_USERNAME, DEFAULT_PASSWORD)
        yield

    return test_lifespan


@pytest.fixture
def app_env(
    clock: FakeClock,
    admin_store: AdminStore,
    session_store: SessionStore,
    token_service: TokenService,
    limiter: RateLimiter,
    auth_service: AuthService,
) -> Generator[AppEnv, None, None]:
    """Yield an AppEnv whose TestClient talks to isolated stores.

    follow_redirects=False so admin-page tests can assert on the Location
    header instead of the followed response.
    """
    app.router.lifespan_context = _patch_lifespan(
        {
            "settings": get_settings(),
            "admin_store": admin_store,
            "session_store": session_store,
            "token_service": token_service,
            "login_limiter": limiter,
            "auth_service": auth_service,
        }
    )
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield AppEnv(
            client=client,
            clock=clock,
            admin_store=admin_store,
            session_store=session_store,
            token_service=token_service,
            limiter=limiter,
        )
