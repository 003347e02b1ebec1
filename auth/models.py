"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in campgrounds/models.py -- dataclasses own domain shape; stores and routes
do the work.

Layer rule: no imports from api/ or campgrounds/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered identity.

    hashed_password is the bcrypt hash, never the plaintext. It is excluded
    from repr() so it cannot leak through log lines, and the API response
    models never declare it, so it cannot leak through serialization either.
    """

    username: str
    email: str
    id: int | None = None
    hashed_password: str | None = field(default=None, repr=False)
    created_at: str | None = None


@dataclass
class FlashMessage:
    """One-shot message queued on a session for the view layer to display."""

    kind: str  # "success" | "error"
    message: str


@dataclass
class Session:
    """Server-side half of a browser session.

    id is HMAC-SHA256(SECRET_KEY, raw_token). The raw token lives only in the
    signed cookie, so a leaked sessions table cannot be replayed.

    user_id is None for anonymous sessions. Anonymous sessions still carry
    return_to and flash state, which is why every visitor gets one.
    """

    id: str
    expires_at: str
    user_id: int | None = None
    return_to: str | None = None
    flash: list[FlashMessage] = field(default_factory=list)
    created_at: str | None = None
