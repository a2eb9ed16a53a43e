"""
tests/conftest.py -- Shared test fixtures for Readivine tests.

This module provides:
  - make_store(): creates an isolated in-memory user DB
  - _patch_lifespan(): wires a test store and a fake GitHub client into
    app.state, bypassing real startup
  - api_client: TestClient with follow_redirects=False plus its store
  - github_oauth: a fresh MagicMock GitHub OAuth client per test
  - FakeClock / SleepRecorder: injectable time for client-side components

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any auth/core import so get_settings() auto-generates
the session and crypto secrets instead of raising ValueError. OAUTH_RATE_LIMIT
must be set before api.limiter is imported or the callback tests would trip
the 20/minute production limit.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("OAUTH_RATE_LIMIT", "1000/minute")
os.environ.setdefault("FRONTEND_URL_DEV", "http://localhost:5173")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import GitHubProfile, User
from auth.oauth import GitHubOAuthClient
from auth.store import UserStore

FRONTEND = "http://localhost:5173"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_store(db_suffix: str | None = None) -> UserStore:
    """Create an isolated named shared-memory SQLite UserStore.

    Args:
        db_suffix: Unique string appended to the DB name so test modules don't
                   share state. A random one is used when omitted.
    """
    name = db_suffix or uuid.uuid4().hex
    return UserStore(db_url=f"sqlite:///file:test_auth_{name}?mode=memory&cache=shared&uri=true")


def make_user(store: UserStore, username: str = "alice", github_token: str | None = "gho_test") -> User:
    uid = store.create_user(
        User(username=username, email=f"{username}@example.com", github_id=f"gh-{username}"),
        github_token=github_token,
    )
    return store.get_by_id(uid)


def fake_github_oauth() -> MagicMock:
    """A GitHub client that accepts code "abc123" and returns alice."""
    client = MagicMock(spec=GitHubOAuthClient)
    client.provider = "github"
    client.configured = True
    client.authorize_url.return_value = (
        "https://github.com/login/oauth/authorize?client_id=test-client&scope=repo+user%3Aemail"
    )
    client.exchange_code_for_token.return_value = "tok_xyz"
    client.fetch_provider_user.return_value = GitHubProfile(
        external_id="42",
        username="alice",
        avatar_url="https://avatars.githubusercontent.com/u/42",
    )
    client.fetch_primary_email.return_value = "alice@example.com"
    return client


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store into app.state so TestClient routes see an isolated
    DB rather than auth/readivine_auth.db, and installs a fake GitHub client so
    no test reaches github.com.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.github_oauth = fake_github_oauth()
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> Generator[UserStore, None, None]:
    user_store = make_store()
    yield user_store
    user_store.close()


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    follow_redirects=False is essential: the OAuth routes answer with 302s and
    we assert on their Location and Set-Cookie headers, which are invisible
    once the client follows the redirect.
    """
    user_store = make_store()
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()


@pytest.fixture()
def github_oauth(api_client) -> MagicMock:
    """Install a fresh fake GitHub client for one test and clear cookies."""
    client, _ = api_client
    client.cookies.clear()
    fake = fake_github_oauth()
    app.state.github_oauth = fake
    return fake


# ---------------------------------------------------------------------------
# Client-side time
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleeps() -> SleepRecorder:
    return SleepRecorder()
