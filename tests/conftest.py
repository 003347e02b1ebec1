"""
tests/conftest.py -- Shared test fixtures for CampReview integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + campgrounds
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - client: TestClient (redirect failure mode, follow_redirects=False)
  - status_client: TestClient with AUTH_FAILURE_MODE=status
  - make_client: factory for extra browsers (own cookie jar) on the same app
  - signup: register through the API so the client holds a session cookie
  - campground_body: a valid create / update payload

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. Every
fixture gets a fresh uuid-named DB so tests never see each other's rows.

DEBUG and RATE_LIMIT_ENABLED must be set before any app import so
get_settings() auto-generates SECRET_KEY and the limiter starts disabled.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import -- get_settings() is cached on first call.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from campgrounds.store import CampgroundStore

TEST_PASSWORD = "correct-horse-battery"

CAMPGROUND_BODY = {
    "title": "Pine Hollow",
    "price": 25.0,
    "description": "Quiet sites under tall pines.",
    "location": "Asheville, NC",
    "image": "https://example.com/pine.jpg",
}

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[UserStore, CampgroundStore]:
    """Create isolated named shared-memory SQLite stores."""
    suffix = uuid.uuid4().hex
    users_url = f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true"
    campgrounds_url = f"sqlite:///file:test_campgrounds_{suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), CampgroundStore(db_url=campgrounds_url)


def _patch_lifespan(user_store: UserStore, campground_store: CampgroundStore, mode: str):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.campground_store = campground_store
        app.state.auth_failure_mode = mode
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _signup(client: TestClient, username: str, email: str | None = None) -> dict:
    """Register a user through the API and return the user JSON.

    Registration logs the user in, so the client keeps the session cookie.
    """
    resp = client.post(
        "/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": TEST_PASSWORD},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[UserStore, CampgroundStore], None, None]:
    user_store, campground_store = _make_test_stores()
    yield user_store, campground_store
    campground_store.close()
    user_store.close()


@pytest.fixture
def client(stores) -> Generator[TestClient, None, None]:
    """TestClient in the default redirect failure mode.

    follow_redirects=False is essential: tests assert on redirect locations
    (e.g. 302 to /login), which are invisible once the client follows them.
    """
    app.router.lifespan_context = _patch_lifespan(*stores, mode="redirect")
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def status_client(stores) -> Generator[TestClient, None, None]:
    """TestClient with guard failures reported as 401 / 403 JSON."""
    app.router.lifespan_context = _patch_lifespan(*stores, mode="status")
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def make_client(client) -> Callable[[], TestClient]:
    """Return a factory for additional clients on the app `client` started.

    Each extra client has its own cookie jar, i.e. it is a second browser.
    It does not re-run the lifespan; app.state is already populated.
    """

    def _make() -> TestClient:
        return TestClient(app, follow_redirects=False, raise_server_exceptions=True)

    return _make


@pytest.fixture
def signup() -> Callable[..., dict]:
    return _signup


@pytest.fixture
def campground_body() -> dict:
    return dict(CAMPGROUND_BODY)
