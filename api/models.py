"""
API request and response models for CampReview REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in campgrounds/models.py
and auth/models.py, which own the internal domain representation. Route
handlers map between the two.

No response model has a password field, so a hashed password can never be
serialized by accident.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import FlashMessage, User
from campgrounds.models import Campground, Review
from campgrounds.store import MAX_RATING, MIN_RATING, rating_summary

# Upper bound for free-text fields (campground description, review body).
MAX_TEXT_LENGTH = 5000

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Used for /me and for owners and authors."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, username=user.username, email=user.email)


class AuthResponse(BaseModel):
    """Response for POST /register and POST /login.

    redirect_to is where a browser client should go next: the consumed
    return-to target, or /campgrounds.
    """

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    redirect_to: str


class FlashItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    message: str


class FlashResponse(BaseModel):
    """Response for GET /flash. Reading the queue empties it."""

    model_config = ConfigDict(frozen=True)

    messages: list[FlashItem] = Field(default_factory=list)

    @classmethod
    def from_messages(cls, messages: list[FlashMessage]) -> "FlashResponse":
        return cls(messages=[FlashItem(kind=m.kind, message=m.message) for m in messages])


# ---------------------------------------------------------------------------
# Campgrounds and reviews -- request models
# ---------------------------------------------------------------------------


class CampgroundWrite(BaseModel):
    """Request body for POST /campgrounds and PATCH /campgrounds/{id}.

    Both are full writes: every field is required. The store repeats the
    check, so a caller bypassing this model still cannot store a partial row.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0, allow_inf_nan=False)
    description: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    location: str = Field(min_length=1, max_length=255)
    image: str = Field(min_length=1, max_length=2048)


class ReviewCreate(BaseModel):
    """Request body for POST /campgrounds/{id}/reviews."""

    model_config = ConfigDict(str_strip_whitespace=True)

    body: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    rating: int = Field(strict=True, ge=MIN_RATING, le=MAX_RATING)


# ---------------------------------------------------------------------------
# Campgrounds and reviews -- response models
# ---------------------------------------------------------------------------


class ReviewResponse(BaseModel):
    """A review with its author resolved."""

    model_config = ConfigDict(frozen=True)

    id: int
    body: str
    rating: int
    campground_id: Optional[int]
    author: Optional[UserResponse]
    created_at: str

    @classmethod
    def from_review(cls, review: Review, users: dict[int, User]) -> "ReviewResponse":
        """Build a ReviewResponse, looking the author up in a pre-fetched user map."""
        author = users.get(review.owner_id)
        return cls(
            id=review.id,
            body=review.body,
            rating=review.rating,
            campground_id=review.campground_id,
            author=UserResponse.from_user(author) if author else None,
            created_at=review.created_at,
        )


class CampgroundResponse(BaseModel):
    """One campground with its owner resolved. Used for list rows and writes."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    price: float
    description: str
    location: str
    image: str
    owner: Optional[UserResponse]
    review_ids: list[int]
    review_count: int
    average_rating: Optional[float]
    created_at: str

    @classmethod
    def from_campground(
        cls,
        campground: Campground,
        users: dict[int, User],
        reviews: Optional[list[Review]] = None,
    ) -> "CampgroundResponse":
        """Build a CampgroundResponse.

        reviews is optional: list rows only know review_ids, so they report
        the count and leave the average to the detail view.
        """
        owner = users.get(campground.owner_id)
        if reviews is None:
            count, average = len(campground.review_ids), None
        else:
            count, average = rating_summary(reviews)
        return cls(
            id=campground.id,
            title=campground.title,
            price=campground.price,
            description=campground.description,
            location=campground.location,
            image=campground.image,
            owner=UserResponse.from_user(owner) if owner else None,
            review_ids=list(campground.review_ids),
            review_count=count,
            average_rating=average,
            created_at=campground.created_at,
        )


class CampgroundDetailResponse(CampgroundResponse):
    """Response for GET /campgrounds/{id}: owner, reviews and their authors."""

    reviews: list[ReviewResponse] = Field(default_factory=list)

    @classmethod
    def from_detail(
        cls,
        campground: Campground,
        reviews: list[Review],
        users: dict[int, User],
    ) -> "CampgroundDetailResponse":
        base = CampgroundResponse.from_campground(campground, users, reviews)
        return cls(
            **base.model_dump(),
            reviews=[ReviewResponse.from_review(r, users) for r in reviews],
        )


class DeleteResponse(BaseModel):
    """Response for DELETE /campgrounds/{id}."""

    model_config = ConfigDict(frozen=True)

    message: str
    deleted_review_ids: list[int] = Field(default_factory=list)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
