"""
tests/test_sessions.py -- Unit tests for session storage, the session cookie,
and per-request context resolution.

Coverage:
  - Cookie signature: tampered or foreign-key cookies decode to None
  - resolve_context(): anonymous fallbacks, authenticated resolution
  - Deleted or expired session rows are not honored
  - Return-to target: set, overwrite, read-once consume
  - Flash queue: push, pop empties
  - purge_expired_sessions() removes only expired rows
  - is_return_to_candidate() path rules
"""

from __future__ import annotations

import os

os.environ.setdefault("DEBUG", "true")

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.context import ANONYMOUS, is_return_to_candidate, request_target, resolve_context
from auth.credentials import register_user
from auth.store import UserStore
from auth.tokens import decode_session_cookie, hash_session_token, open_session


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def alice(store: UserStore):
    return register_user(store, "alice", "alice@example.com", "pw-alice")


def _past_iso() -> str:
    return (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()


class TestSessionCookie:
    def test_open_session_cookie_resolves_to_row(self, store: UserStore) -> None:
        session, cookie = open_session(store)
        raw = decode_session_cookie(cookie)
        assert raw is not None
        assert hash_session_token(raw) == session.id

    def test_row_id_is_not_the_raw_token(self, store: UserStore) -> None:
        session, cookie = open_session(store)
        assert decode_session_cookie(cookie) != session.id

    def test_tampered_cookie_rejected(self, store: UserStore) -> None:
        _, cookie = open_session(store)
        header, payload, signature = cookie.split(".")
        forged = f"{header}.{payload}.{signature[::-1]}"
        assert decode_session_cookie(forged) is None

    def test_cookie_signed_with_other_key_rejected(self) -> None:
        foreign = jwt.encode({"sid": "abc"}, "x" * 40, algorithm="HS256")
        assert decode_session_cookie(foreign) is None

    def test_garbage_cookie_rejected(self) -> None:
        assert decode_session_cookie("not-a-jwt") is None


class TestResolveContext:
    def test_no_cookie_is_anonymous(self, store: UserStore) -> None:
        assert resolve_context(None, store) is ANONYMOUS

    def test_anonymous_session(self, store: UserStore) -> None:
        session, cookie = open_session(store)
        ctx = resolve_context(cookie, store)
        assert ctx.session_id == session.id
        assert ctx.is_authenticated() is False
        assert ctx.current_user() is None

    def test_authenticated_session(self, store: UserStore, alice) -> None:
        _, cookie = open_session(store, alice.id)
        ctx = resolve_context(cookie, store)
        assert ctx.is_authenticated() is True
        assert ctx.current_user().username == "alice"

    def test_deleted_session_not_honored(self, store: UserStore, alice) -> None:
        """Logout deletes the row; the still-valid JWT must no longer authenticate."""
        session, cookie = open_session(store, alice.id)
        assert store.delete_session(session.id) is True
        assert resolve_context(cookie, store) is ANONYMOUS

    def test_expired_session_not_honored_and_removed(self, store: UserStore, alice) -> None:
        session, cookie = open_session(store, alice.id)
        with store.engine.begin() as conn:
            conn.exec_driver_sql("UPDATE sessions SET expires_at = ? WHERE id = ?", (_past_iso(), session.id))
        assert resolve_context(cookie, store) is ANONYMOUS
        assert store.get_session(session.id) is None

    def test_context_is_immutable(self, store: UserStore) -> None:
        session, cookie = open_session(store)
        ctx = resolve_context(cookie, store)
        with pytest.raises(AttributeError):
            ctx.user = object()


class TestReturnTo:
    def test_pop_consumes(self, store: UserStore) -> None:
        session, _ = open_session(store)
        store.set_return_to(session.id, "/campgrounds/7")
        assert store.pop_return_to(session.id) == "/campgrounds/7"
        assert store.pop_return_to(session.id) is None

    def test_set_overwrites(self, store: UserStore) -> None:
        session, _ = open_session(store)
        store.set_return_to(session.id, "/campgrounds/1")
        store.set_return_to(session.id, "/campgrounds/2?page=3")
        assert store.pop_return_to(session.id) == "/campgrounds/2?page=3"

    def test_pop_unknown_session(self, store: UserStore) -> None:
        assert store.pop_return_to("missing") is None


class TestFlash:
    def test_pop_returns_in_order_and_empties(self, store: UserStore) -> None:
        session, _ = open_session(store)
        store.push_flash(session.id, "error", "first")
        store.push_flash(session.id, "success", "second")
        messages = store.pop_flash(session.id)
        assert [(m.kind, m.message) for m in messages] == [("error", "first"), ("success", "second")]
        assert store.pop_flash(session.id) == []

    def test_push_to_unknown_session_is_noop(self, store: UserStore) -> None:
        store.push_flash("missing", "error", "lost")
        assert store.pop_flash("missing") == []


def test_purge_expired_sessions_keeps_live_rows(store: UserStore) -> None:
    live, _ = open_session(store)
    store.create_session("stale-session", _past_iso())
    assert store.purge_expired_sessions() == 1
    assert store.get_session(live.id) is not None


@pytest.mark.parametrize(
    ("method", "path", "expected"),
    [
        ("GET", "/campgrounds", True),
        ("GET", "/campgrounds/3", True),
        ("POST", "/campgrounds", False),
        ("GET", "/login", False),
        ("GET", "/register", False),
        ("GET", "/logout", False),
        ("GET", "/css/app.css", False),
        ("GET", "/js/validate.js", False),
        ("GET", "/images/logo.png", False),
        ("GET", "/favicon.ico", False),
        ("GET", "/health", False),
        ("GET", "/flash", False),
    ],
)
def test_return_to_candidates(method: str, path: str, expected: bool) -> None:
    assert is_return_to_candidate(method, path) is expected


def test_request_target_keeps_query() -> None:
    assert request_target("/campgrounds", "page=2") == "/campgrounds?page=2"
    assert request_target("/campgrounds") == "/campgrounds"
