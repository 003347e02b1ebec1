"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_context() returns the RequestContext the session middleware attached to
request.state. login_required() is the RequireAuthenticated stage of the
guard chain; the ownership stages (which need the campground store) are in
api/dependencies.py and depend on login_required, so authentication always
runs first. flash() queues a message on the caller's session for the
view layer to pick up from GET /flash.

Layer rule: no imports from api/ or campgrounds/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.context import RequestContext, request_target, resolve_request_context
from auth.guards import require_authenticated
from auth.models import User


def get_context(request: Request) -> RequestContext:
    """Return this request's identity snapshot.

    The middleware always sets request.state.context. The fallback resolve
    covers apps assembled without the middleware (e.g. a bare router in a
    unit test).
    """
    ctx = getattr(request.state, "context", None)
    if ctx is None:
        ctx = resolve_request_context(request, request.app.state.user_store)
        request.state.context = ctx
    return ctx


def login_required(request: Request, ctx: RequestContext = Depends(get_context)) -> User:
    """Require a signed-in user. Raises Unauthenticated otherwise.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(user: User = Depends(login_required)): ...
    """
    target = request_target(request.url.path, request.url.query)
    return require_authenticated(ctx, target, request.app.state.user_store)


def flash(request: Request, kind: str, message: str) -> None:
    """Queue a one-shot message on the caller's session.

    No-op when the request has no session row (nothing to attach it to).
    """
    ctx = get_context(request)
    if ctx.session_id is not None:
        request.app.state.user_store.push_flash(ctx.session_id, kind, message)
