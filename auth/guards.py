"""
auth/guards.py -- Authorization guards.

Each guard is a plain function over a RequestContext and, for ownership, a
lookup callable. Either it returns what the next stage needs (the user, the
loaded resource) or it raises one of the recoverable errors from
core/errors.py. Raising is what short-circuits the chain: FastAPI stops
resolving dependencies at the first exception and api/main.py turns it into
the terminal response for the request.

Keeping them free of FastAPI means they can be unit-tested with a fake
context and a fake lookup. The Depends() wrappers live in
auth/dependencies.py and api/dependencies.py.

Ownership is plain value equality of integer ids.

Layer rule: no imports from api/ or campgrounds/. Resources are anything
with an owner_id attribute.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, TypeVar

from auth.context import RequestContext
from auth.models import User
from core.errors import NotAuthorized, NotFound, Unauthenticated

logger = logging.getLogger("campreview.auth")


class Owned(Protocol):
    owner_id: int


class ReturnToRecorder(Protocol):
    def set_return_to(self, session_id: str, path: str) -> None: ...


T = TypeVar("T", bound=Owned)


def require_authenticated(ctx: RequestContext, path: str, sessions: ReturnToRecorder) -> User:
    """Pass signed-in users through; send everyone else to sign in.

    For an anonymous caller, path is recorded as the session's return-to
    target so login can bring them back, then Unauthenticated is raised.
    """
    user = ctx.current_user()
    if user is not None:
        return user
    if ctx.session_id is not None:
        sessions.set_return_to(ctx.session_id, path)
    raise Unauthenticated()


def require_owner(
    ctx: RequestContext,
    resource_id: int,
    lookup: Callable[[int], Optional[T]],
    *,
    resource: str,
    redirect_to: str,
) -> T:
    """Load a resource and check the current user owns it.

    Returns the loaded resource so the handler does not fetch it twice.

    Raises:
        Unauthenticated -- no current user (guard ran without the auth guard).
        NotFound        -- lookup returned None. Same answer in every failure
                           mode; a missing resource is not an auth problem.
        NotAuthorized   -- owner_id differs from the current user's id.
    """
    user = ctx.current_user()
    if user is None:
        raise Unauthenticated()
    loaded = lookup(resource_id)
    if loaded is None:
        raise NotFound(f"{resource} not found.")
    if loaded.owner_id != user.id:
        logger.info("User %s denied on %s %s", user.id, resource.lower(), resource_id)
        raise NotAuthorized(redirect_to=redirect_to)
    return loaded
