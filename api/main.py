"""
api/main.py -- FastAPI application entry point for CampReview.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- method, path, status and latency for every request
  4. session_context       -- resolves the session cookie into a RequestContext
  5. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (user and campground stores, session purge task)
and shutdown (cancel purge task, close DB connections) symmetrically.

Guard failures:
  Unauthenticated and NotAuthorized carry a redirect target. With
  AUTH_FAILURE_MODE=redirect (default) they become a 302 to that target and
  the message is queued as an "error" flash on the session. With
  AUTH_FAILURE_MODE=status they become 401 / 403 JSON errors. Every other
  domain error is always a JSON error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.campgrounds import router as campgrounds_router
from api.routes.reviews import router as reviews_router
from auth.context import RequestContext, is_return_to_candidate, request_target, resolve_request_context
from auth.store import UserStore
from auth.tokens import SESSION_COOKIE, open_session, set_session_cookie
from campgrounds.store import CampgroundStore
from core.config import get_settings
from core.errors import AppError

__version__ = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("campreview.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired session rows every hour.

    get_session() already ignores expired rows; this only keeps the table
    from growing with sessions nobody comes back for. CancelledError from
    task.cancel() during shutdown propagates out of asyncio.sleep.
    """
    while True:
        await asyncio.sleep(60 * 60)
        removed = await run_in_threadpool(app.state.user_store.purge_expired_sessions)
        if removed:
            logger.info("Purged %d expired session(s)", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and close them on shutdown.

    The purge task starts last because it references app.state.user_store.
    """
    logger.info("CampReview API starting up")
    app.state.user_store = UserStore(db_url=_settings.database_url)
    app.state.campground_store = CampgroundStore(db_url=_settings.database_url)
    app.state.auth_failure_mode = _settings.auth_failure_mode
    logger.info("Stores initialized (auth_failure_mode=%s)", _settings.auth_failure_mode)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.campground_store.close()
    app.state.user_store.close()
    logger.info("CampReview API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CampReview API",
    description="Campground listings and reviews with session-based authentication.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware("http") both wrap the app built so
# far, so the LAST registered middleware is the outermost. Registration below
# runs innermost first: SlowAPI -> session_context -> log_requests -> CORS ->
# TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Session middleware
#
# Resolves the caller's session once per request and stores the frozen
# RequestContext on request.state for get_context(). A visitor without a
# live session gets a fresh anonymous one, so there is always a row to hold
# the return-to target and flash messages.
# ---------------------------------------------------------------------------


def _response_sets_session_cookie(response) -> bool:
    return any(h.startswith(f"{SESSION_COOKIE}=") for h in response.headers.getlist("set-cookie"))


def _build_context(request: Request, store: UserStore) -> tuple[RequestContext, Optional[str]]:
    """Resolve or open the caller's session. Returns (context, new cookie or None).

    Blocking: every branch talks to the database.
    """
    ctx = resolve_request_context(request, store)
    new_cookie: Optional[str] = None
    if ctx.session_id is None:
        session, new_cookie = open_session(store)
        ctx = RequestContext(session_id=session.id)

    if not ctx.is_authenticated() and is_return_to_candidate(request.method, request.url.path):
        target = request_target(request.url.path, request.url.query)
        store.set_return_to(ctx.session_id, target)
        ctx = RequestContext(session_id=ctx.session_id, return_to=target)
    return ctx, new_cookie


@app.middleware("http")
async def session_context(request: Request, call_next):
    # Store calls are synchronous SQLAlchemy; keep them off the event loop.
    ctx, new_cookie = await run_in_threadpool(_build_context, request, request.app.state.user_store)
    request.state.context = ctx
    response = await call_next(request)

    # Login, registration and logout write their own cookie; leave it alone.
    if new_cookie is not None and not _response_sets_session_cookie(response):
        set_session_cookie(response, new_cookie)
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(campgrounds_router, tags=["Campgrounds"])
app.include_router(reviews_router, tags=["Reviews"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All JSON errors use the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse | RedirectResponse:
    """Translate a domain error into the terminal response for the request."""
    if exc.redirect_to and request.app.state.auth_failure_mode == "redirect":
        ctx: Optional[RequestContext] = getattr(request.state, "context", None)
        if ctx is not None and ctx.session_id is not None:
            await run_in_threadpool(request.app.state.user_store.push_flash, ctx.session_id, "error", exc.message)
        return RedirectResponse(exc.redirect_to, status_code=302)
    return _error_response(exc.status_code, exc.code, exc.message, exc.detail)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the request body or path params fail validation."""
    return _error_response(400, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for router-level HTTP errors (unknown route, wrong method)."""
    if exc.status_code == 404:
        return _error_response(404, "not_found", "Page Not Found")
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is logged, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root and health
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    return RedirectResponse("/campgrounds", status_code=302)


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version. Not rate limited."""
    return HealthResponse(version=__version__)
