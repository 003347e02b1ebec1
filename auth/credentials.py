"""
auth/credentials.py -- Password hashing, registration, and authentication.

Credential verification is a standalone service, not a method on User: the
User dataclass only carries the hash, and these functions decide what a
valid credential is. Swapping the hashing policy never touches the entity.

Passwords: bcrypt used directly (no passlib wrapper). Bcrypt's cost factor
makes brute force expensive. _DUMMY_HASH enables timing equalization in
authenticate_user() so response time does not reveal whether a username
exists.

Layer rule: no imports from api/ or campgrounds/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

from auth.models import User
from core.errors import InvalidCredential, ValidationFailure

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("campreview.auth")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps passwords at 72 characters via the Pydantic model.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store: treat as a failed match.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("campreview_timing_dummy")


def register_user(store: UserStore, username: str, email: str, password: str) -> User:
    """Create a new account and return the stored User.

    Raises ValidationFailure for blank fields and DuplicateIdentity (from the
    store) when the username or email is already taken. The email is stored
    lower-cased so "Bob@Example.com" and "bob@example.com" collide.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email or not password:
        raise ValidationFailure("Username, email and password are required.")

    user_id = store.create_user(User(username=username, email=email, hashed_password=hash_password(password)))
    created = store.get_by_id(user_id)
    logger.info("Registered user %s (id=%d)", username, user_id)
    return created


def authenticate_user(store: UserStore, username: str, password: str) -> User:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success. Raises InvalidCredential on any failure,
    with the same message for both cases.
    """
    user = store.get_by_username(username)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredential()
    if not verify_password(password, user.hashed_password):
        logger.info("Failed login for %s", username)
        raise InvalidCredential()
    return user
