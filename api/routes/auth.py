"""
api/routes/auth.py -- Registration, login, logout and session utility endpoints.

Routes:
  POST /register  -- create account; logs the new user in (201)
  POST /login     -- password login; consumes the return-to target
  POST /logout    -- deletes the session row and clears the cookie
  GET  /me        -- current user info (requires auth)
  GET  /flash     -- read-and-clear the session's flash messages

Security:
  POST /login and POST /register are rate-limited per IP (LOGIN_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline.
  Session id rotation: login and registration delete the caller's current
      session row before opening a new one bound to the user.
  redirect_to is only ever a relative path, never an absolute URL (no open
      redirect through a crafted return-to target).
  Cache-Control: no-store on login and registration responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, FlashResponse, LoginRequest, MessageResponse, RegisterRequest, UserResponse
from auth.context import RequestContext
from auth.credentials import authenticate_user, register_user
from auth.dependencies import get_context, login_required
from auth.models import User
from auth.store import UserStore
from auth.tokens import clear_session_cookie, open_session, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("campreview.auth")

_settings = get_settings()

_DEFAULT_LANDING = "/campgrounds"

# Auth policy:
# - POST /register: public, rate-limited
# - POST /login:    public, rate-limited
# - POST /logout:   public -- ending a session needs no prior auth
# - GET  /flash:    public -- anonymous sessions get flash messages too
# - GET  /me:       requires auth (login_required)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_landing(target: str | None) -> str:
    """Return target if it is a same-site relative path, else the default landing page."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return _DEFAULT_LANDING
    return target


def _start_session(
    store: UserStore,
    ctx: RequestContext,
    user: User,
    *,
    status_code: int,
    consume_return_to: bool,
    welcome: str,
) -> JSONResponse:
    """Bind a fresh session to user and build the response that carries it.

    The caller's previous session row is deleted first, so its cookie stops
    working immediately.
    """
    return_to = None
    if ctx.session_id is not None:
        if consume_return_to:
            return_to = store.pop_return_to(ctx.session_id)
        store.delete_session(ctx.session_id)
    session, cookie_value = open_session(store, user.id)
    store.push_flash(session.id, "success", welcome)

    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(user),
            redirect_to=_safe_landing(return_to),
        ).model_dump(),
    )
    set_session_cookie(resp, cookie_value)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)
@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    ctx: RequestContext = Depends(get_context),
) -> JSONResponse:
    """Create an account and sign the new user in.

    Duplicate username or email is a 400 with nothing written.
    """
    store: UserStore = request.app.state.user_store
    user = register_user(store, body.username, body.email, body.password)
    return _start_session(
        store, ctx, user, status_code=201, consume_return_to=False, welcome="Welcome to CampReview!"
    )


@limiter.limit(_settings.login_rate_limit)
@router.post("/login", response_model=AuthResponse)
def login(
    request: Request,
    body: LoginRequest,
    ctx: RequestContext = Depends(get_context),
) -> JSONResponse:
    """Authenticate with username and password; set the session cookie.

    redirect_to is the return-to target recorded while the caller was
    anonymous, or /campgrounds. The target is consumed: a later login
    without a new anonymous GET lands on /campgrounds.

    Unknown username and wrong password give the same 401.
    """
    store: UserStore = request.app.state.user_store
    user = authenticate_user(store, body.username, body.password)
    logger.info("User %s logged in", user.username)
    return _start_session(store, ctx, user, status_code=200, consume_return_to=True, welcome="Welcome back!")


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, ctx: RequestContext = Depends(get_context)) -> JSONResponse:
    """Delete the session row and clear the cookie in the same response.

    A copy of the old cookie is rejected from this point on because its
    session row no longer exists.
    """
    store: UserStore = request.app.state.user_store
    if ctx.session_id is not None:
        store.delete_session(ctx.session_id)
    if ctx.user is not None:
        logger.info("User %s logged out", ctx.user.username)
    resp = JSONResponse(content=MessageResponse(message="Goodbye!").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/flash", response_model=FlashResponse)
def read_flash(request: Request, ctx: RequestContext = Depends(get_context)) -> FlashResponse:
    """Return and clear the messages queued on the caller's session."""
    if ctx.session_id is None:
        return FlashResponse()
    store: UserStore = request.app.state.user_store
    return FlashResponse.from_messages(store.pop_flash(ctx.session_id))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(login_required)) -> UserResponse:
    """Return identity information for the currently authenticated user."""
    return UserResponse.from_user(current_user)
