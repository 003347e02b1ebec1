"""
auth/context.py -- Per-request identity context.

RequestContext is an immutable snapshot taken once per request by the session
middleware in api/main.py: who the caller is, which session row they hold,
and the return-to target stored on it at resolution time. Handlers receive it
explicitly (Depends(get_context)) instead of reading mutable globals off the
request object. Anything that changes session state (login, return-to,
flash) goes through UserStore, never through this object.

Layer rule: no imports from api/ or campgrounds/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from auth.models import User
from auth.tokens import SESSION_COOKIE, decode_session_cookie, hash_session_token

if TYPE_CHECKING:
    from auth.store import UserStore

# Paths that never become a post-login return target. Auth pages would loop
# the user straight back to the login form; the rest are not pages.
_AUTH_PATH_MARKERS = ("/login", "/register", "/logout")
_NON_PAGE_PREFIXES = ("/css", "/js", "/images", "/static", "/favicon.ico", "/health", "/flash")


@dataclass(frozen=True)
class RequestContext:
    user: Optional[User] = None
    session_id: Optional[str] = None
    return_to: Optional[str] = None

    def is_authenticated(self) -> bool:
        return self.user is not None

    def current_user(self) -> Optional[User]:
        return self.user


ANONYMOUS = RequestContext()


def resolve_context(cookie_value: Optional[str], store: UserStore) -> RequestContext:
    """Build the context for a request from its session cookie.

    Any failure (no cookie, bad signature, unknown or expired session row,
    user since removed) degrades to an anonymous context. Never raises.
    """
    if not cookie_value:
        return ANONYMOUS
    raw = decode_session_cookie(cookie_value)
    if raw is None:
        return ANONYMOUS
    session = store.get_session(hash_session_token(raw))
    if session is None:
        return ANONYMOUS
    user = store.get_by_id(session.user_id) if session.user_id is not None else None
    return RequestContext(user=user, session_id=session.id, return_to=session.return_to)


def resolve_request_context(request, store: UserStore) -> RequestContext:
    return resolve_context(request.cookies.get(SESSION_COOKIE), store)


def request_target(path: str, query: str = "") -> str:
    """Return path plus query string, the form stored as a return-to target."""
    return f"{path}?{query}" if query else path


def is_return_to_candidate(method: str, path: str) -> bool:
    """Return True if a request should overwrite the session's return-to target.

    Only page-like GETs qualify: auth pages and static or utility paths are
    excluded.
    """
    if method != "GET":
        return False
    if any(marker in path for marker in _AUTH_PATH_MARKERS):
        return False
    return not path.startswith(_NON_PAGE_PREFIXES)
