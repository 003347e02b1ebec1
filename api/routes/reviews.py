"""
api/routes/reviews.py -- Review routes nested under a campground.

Routes:
  POST   /campgrounds/{id}/reviews              -- add a review (auth)
  GET    /campgrounds/{id}/reviews              -- list reviews, authors resolved (public)
  DELETE /campgrounds/{id}/reviews/{review_id}  -- delete (auth + review author)

Any signed-in user may review any campground, including their own.
A review id that does not belong to the campground in the path is 404.
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_campground_store, review_owner_required
from api.models import MessageResponse, ReviewCreate, ReviewResponse
from auth.dependencies import flash, login_required
from auth.models import User
from auth.store import UserStore
from campgrounds.models import Review
from campgrounds.store import CampgroundStore

router = APIRouter()


@router.post("/campgrounds/{campground_id}/reviews", response_model=ReviewResponse, status_code=201)
def create_review(
    request: Request,
    campground_id: int,
    body: ReviewCreate,
    current_user: User = Depends(login_required),
    store: CampgroundStore = Depends(get_campground_store),
) -> ReviewResponse:
    """Attach a review by the current user to the campground."""
    review_id = store.add_review(
        campground_id,
        Review(body=body.body, rating=body.rating, owner_id=current_user.id),
    )
    flash(request, "success", "Created new review!")
    return ReviewResponse.from_review(store.get_review(review_id), {current_user.id: current_user})


@router.get("/campgrounds/{campground_id}/reviews", response_model=list[ReviewResponse])
def list_reviews(
    request: Request,
    campground_id: int,
    store: CampgroundStore = Depends(get_campground_store),
) -> list[ReviewResponse]:
    """Return the campground's reviews, oldest first."""
    reviews = store.list_reviews(campground_id)
    user_store: UserStore = request.app.state.user_store
    users = user_store.get_many(r.owner_id for r in reviews)
    return [ReviewResponse.from_review(r, users) for r in reviews]


@router.delete("/campgrounds/{campground_id}/reviews/{review_id}", response_model=MessageResponse)
def delete_review(
    request: Request,
    campground_id: int,
    review: Review = Depends(review_owner_required),
    store: CampgroundStore = Depends(get_campground_store),
) -> MessageResponse:
    """Remove the review from its campground and delete it."""
    store.delete_review(campground_id, review.id)
    flash(request, "success", "Successfully deleted review.")
    return MessageResponse(message="Review deleted.")
