"""
auth/tokens.py -- Session tokens and the signed session cookie.

Security design decisions:
  Session token: secrets.token_urlsafe(32) gives 256 bits of entropy. The
       server stores only HMAC-SHA256(SECRET_KEY, token) as the session row id,
       so whoever reads the sessions table still cannot forge a cookie.

  Cookie: python-jose JWT (HS256) carrying the raw token as the "sid" claim
       and an "exp" matching the session row. The signature rejects tampered
       cookies before any DB lookup. The JWT alone is never enough: the
       session row must still exist, which is what makes logout immediate.

  Cookie flags: httponly (no JS access), samesite=lax (CSRF mitigation for
       cross-site POSTs), secure when SECURE_COOKIES=true.

Layer rule: no imports from api/ or campgrounds/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import Session
    from auth.store import UserStore

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE = "session"


# ---------------------------------------------------------------------------
# Raw token generation and hashing
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_session_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string (the session row id)."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie encode / decode
# ---------------------------------------------------------------------------


def encode_session_cookie(raw_token: str, expires_at: datetime) -> str:
    return jwt.encode({"sid": raw_token, "exp": expires_at}, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_cookie(value: str) -> str | None:
    """Verify the cookie signature and expiry. Returns the raw token or None.

    Returning None (rather than raising) keeps the caller simple: any bad
    cookie is treated the same as no cookie at all.
    """
    try:
        payload = jwt.decode(value, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None


def open_session(store: UserStore, user_id: int | None = None) -> tuple[Session, str]:
    """Create a fresh session row and return (session, cookie_value).

    user_id=None opens an anonymous session. Login and registration call this
    with the user's id after deleting the previous session, which rotates the
    session id on every privilege change.
    """
    raw = generate_session_token()
    expires = datetime.now(timezone.utc) + timedelta(seconds=_settings.session_max_age_seconds)
    session = store.create_session(hash_session_token(raw), expires.isoformat(), user_id=user_id)
    return session, encode_session_cookie(raw, expires)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, value: str) -> None:
    """Write the signed session cookie on the response.

    max_age matches the session row expiry so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=value,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.session_max_age_seconds,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax", secure=_settings.secure_cookies)
