"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as campgrounds/store.py).
UserStore is the repository; _row_to_user / _row_to_session are the mappers.
Route and dependency code never touches SQL directly.

Two tables live here:
  users    -- identity + bcrypt hash. UNIQUE(username) and UNIQUE(email) make
              registration atomic: a colliding INSERT fails as a whole, so no
              partial record is ever written.
  sessions -- server-side session state keyed by HMAC(session token). Deleting
              a row is what logs a browser out; the cookie alone proves nothing.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or campgrounds/.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import FlashMessage, Session, User
from core.errors import DuplicateIdentity

logger = logging.getLogger("campreview.auth")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'campreview_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(64), primary_key=True),  # HMAC-SHA256 hex of the raw token
    Column("user_id", Integer),  # NULL = anonymous
    Column("return_to", Text),
    Column("flash", Text),  # JSON array of {"kind", "message"}
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    return _now().isoformat()


def _is_expired(expires_at: str) -> bool:
    try:
        dt = datetime.fromisoformat(expires_at)
    except ValueError:
        return True
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt <= _now()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Session entities.

    Usage:
        store = UserStore()
        user_id = store.create_user(User(username="alice", email="a@example.com", hashed_password=h))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises DuplicateIdentity if the username or the email is taken. The
        UNIQUE constraints reject the whole INSERT, so nothing is written.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            logger.info("Registration rejected for %s: identity already taken", user.username)
            if self.get_by_username(user.username) is not None:
                raise DuplicateIdentity("A user with that username is already registered.") from exc
            if self.get_by_email(user.email) is not None:
                raise DuplicateIdentity("A user with that email is already registered.") from exc
            raise

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by stored (lower-cased) email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_many(self, user_ids) -> dict[int, User]:
        """Return {id: User} for every id that exists, in one query.

        Used to resolve campground owners and review authors without an
        N+1 query per review. Missing ids are simply absent from the result.
        """
        ids = {i for i in user_ids if i is not None}
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(ids))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session_id: str, expires_at: str, user_id: int | None = None) -> Session:
        """Insert a session row. user_id=None creates an anonymous session."""
        created_at = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session_id,
                    user_id=user_id,
                    return_to=None,
                    flash=None,
                    created_at=created_at,
                    expires_at=expires_at,
                )
            )
            conn.commit()
        return Session(id=session_id, user_id=user_id, expires_at=expires_at, created_at=created_at)

    def get_session(self, session_id: str) -> Session | None:
        """Return the live session for session_id, or None.

        An expired row is deleted on sight and reported as absent, so an
        expired cookie behaves exactly like a missing one.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        if row is None:
            return None
        if _is_expired(row.expires_at):
            self.delete_session(session_id)
            return None
        return _row_to_session(row)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session row. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
            conn.commit()
        return result.rowcount > 0

    def set_return_to(self, session_id: str, path: str) -> None:
        """Overwrite the post-login return target on a session."""
        with self.engine.connect() as conn:
            conn.execute(_sessions.update().where(_sessions.c.id == session_id).values(return_to=path))
            conn.commit()

    def pop_return_to(self, session_id: str) -> str | None:
        """Read and clear the return target in one transaction."""
        with self.engine.begin() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
            if row is None:
                return None
            conn.execute(_sessions.update().where(_sessions.c.id == session_id).values(return_to=None))
        return row.return_to

    def push_flash(self, session_id: str, kind: str, message: str) -> None:
        """Append a flash message to a session's queue."""
        with self.engine.begin() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
            if row is None:
                return
            queue = json.loads(row.flash) if row.flash else []
            queue.append({"kind": kind, "message": message})
            conn.execute(_sessions.update().where(_sessions.c.id == session_id).values(flash=json.dumps(queue)))

    def pop_flash(self, session_id: str) -> list[FlashMessage]:
        """Return and clear every queued flash message."""
        with self.engine.begin() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
            if row is None or not row.flash:
                return []
            conn.execute(_sessions.update().where(_sessions.c.id == session_id).values(flash=None))
        return [FlashMessage(**item) for item in json.loads(row.flash)]

    def purge_expired_sessions(self) -> int:
        """Delete every expired session row and return how many were removed.

        Uses Python date comparison (not SQLite date functions) for
        portability, same as the lazy check in get_session().
        """
        with self.engine.connect() as conn:
            rows = conn.execute(select(_sessions.c.id, _sessions.c.expires_at)).fetchall()
            expired = [r.id for r in rows if _is_expired(r.expires_at)]
            if expired:
                conn.execute(_sessions.delete().where(_sessions.c.id.in_(expired)))
                conn.commit()
        return len(expired)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    flash = [FlashMessage(**item) for item in json.loads(row.flash)] if row.flash else []
    return Session(
        id=row.id,
        user_id=row.user_id,
        return_to=row.return_to,
        flash=flash,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )
