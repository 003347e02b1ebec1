"""
core/errors.py -- Domain error taxonomy for CampReview.

Every failure a request can end in is one of these classes. Stores and guards
raise them; api/main.py owns the single translation point from error to HTTP
response, so no layer below the API needs to know about status codes beyond
the class attribute.

redirect_to is only meaningful for the two recoverable guard failures
(Unauthenticated, NotAuthorized). In the browser-facing failure mode the API
answers those with a 302 to redirect_to instead of a JSON error.

Layer rule: core/ is the kernel. No imports from api/, auth/, or campgrounds/.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for every expected, recoverable failure."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, detail: Optional[str] = None, redirect_to: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.redirect_to = redirect_to


class ValidationFailure(AppError):
    """A required field is missing or a value is out of range."""

    status_code = 400
    code = "validation_error"


class NotFound(AppError):
    """A referenced campground or review does not exist."""

    status_code = 404
    code = "not_found"


class Unauthenticated(AppError):
    """The request needs a signed-in user and has none."""

    status_code = 401
    code = "unauthenticated"

    def __init__(self, message: str = "You need to be signed in.", redirect_to: str = "/login") -> None:
        super().__init__(message, redirect_to=redirect_to)


class NotAuthorized(AppError):
    """The signed-in user does not own the resource they tried to change."""

    status_code = 403
    code = "not_authorized"

    def __init__(self, message: str = "You are not the author.", redirect_to: str = "/campgrounds") -> None:
        super().__init__(message, redirect_to=redirect_to)


class DuplicateIdentity(AppError):
    """Registration collided with an existing username or email."""

    status_code = 400
    code = "duplicate_identity"


class InvalidCredential(AppError):
    """Unknown username or wrong password. Deliberately does not say which."""

    status_code = 401
    code = "bad_credentials"

    def __init__(self, message: str = "Invalid username or password.") -> None:
        super().__init__(message)
