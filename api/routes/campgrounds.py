"""
api/routes/campgrounds.py -- Campground listing routes.

Routes:
  GET    /campgrounds        -- list all campgrounds, owners resolved (public)
  POST   /campgrounds        -- create; the caller becomes the owner (auth)
  GET    /campgrounds/{id}   -- detail with owner, reviews and authors (public)
  PATCH  /campgrounds/{id}   -- full replace of the five fields (auth + owner)
  DELETE /campgrounds/{id}   -- delete with its reviews (auth + owner)

Guards run as FastAPI dependencies before the body is validated, so an
anonymous or non-owner write is refused before any field checks and nothing
is written.
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import campground_owner_required, get_campground_store
from api.models import CampgroundDetailResponse, CampgroundResponse, CampgroundWrite, DeleteResponse
from auth.dependencies import flash, login_required
from auth.models import User
from auth.store import UserStore
from campgrounds.models import Campground
from campgrounds.store import CampgroundStore
from core.errors import NotFound

router = APIRouter()


# ---------------------------------------------------------------------------
# GET /campgrounds -- index
# ---------------------------------------------------------------------------


@router.get("/campgrounds", response_model=list[CampgroundResponse])
def list_campgrounds(
    request: Request,
    store: CampgroundStore = Depends(get_campground_store),
) -> list[CampgroundResponse]:
    """Return every campground, newest first, with its owner."""
    user_store: UserStore = request.app.state.user_store
    campgrounds = store.list_campgrounds()
    users = user_store.get_many(c.owner_id for c in campgrounds)
    return [CampgroundResponse.from_campground(c, users) for c in campgrounds]


# ---------------------------------------------------------------------------
# POST /campgrounds -- create
# ---------------------------------------------------------------------------


@router.post("/campgrounds", response_model=CampgroundResponse, status_code=201)
def create_campground(
    request: Request,
    body: CampgroundWrite,
    current_user: User = Depends(login_required),
    store: CampgroundStore = Depends(get_campground_store),
) -> CampgroundResponse:
    """Create a campground owned by the current user. It starts with no reviews."""
    campground_id = store.create_campground(Campground(**body.model_dump(), owner_id=current_user.id))
    created = store.get_campground(campground_id)
    flash(request, "success", "Successfully made a new campground!")
    return CampgroundResponse.from_campground(created, {current_user.id: current_user}, [])


# ---------------------------------------------------------------------------
# GET /campgrounds/{campground_id} -- detail
# ---------------------------------------------------------------------------


@router.get("/campgrounds/{campground_id}", response_model=CampgroundDetailResponse)
def show_campground(
    request: Request,
    campground_id: int,
    store: CampgroundStore = Depends(get_campground_store),
) -> CampgroundDetailResponse:
    """Return a campground with its owner, its reviews and each review's author.

    Owner and authors are fetched in one batched user lookup.
    """
    campground = store.get_campground(campground_id)
    if campground is None:
        raise NotFound("Campground not found.")
    reviews = store.list_reviews(campground_id)
    user_store: UserStore = request.app.state.user_store
    users = user_store.get_many([campground.owner_id, *(r.owner_id for r in reviews)])
    return CampgroundDetailResponse.from_detail(campground, reviews, users)


# ---------------------------------------------------------------------------
# PATCH /campgrounds/{campground_id} -- update
# ---------------------------------------------------------------------------


@router.patch("/campgrounds/{campground_id}", response_model=CampgroundResponse)
def update_campground(
    request: Request,
    body: CampgroundWrite,
    campground: Campground = Depends(campground_owner_required),
    store: CampgroundStore = Depends(get_campground_store),
) -> CampgroundResponse:
    """Replace title, price, description, location and image. Owner and reviews are kept."""
    updated = store.replace_campground(campground.id, **body.model_dump())
    user_store: UserStore = request.app.state.user_store
    flash(request, "success", "Successfully updated campground!")
    return CampgroundResponse.from_campground(
        updated,
        user_store.get_many([updated.owner_id]),
        store.list_reviews(updated.id),
    )


# ---------------------------------------------------------------------------
# DELETE /campgrounds/{campground_id} -- delete with cascade
# ---------------------------------------------------------------------------


@router.delete("/campgrounds/{campground_id}", response_model=DeleteResponse)
def delete_campground(
    request: Request,
    campground: Campground = Depends(campground_owner_required),
    store: CampgroundStore = Depends(get_campground_store),
) -> DeleteResponse:
    """Delete the campground and every review it contains.

    A concurrent delete that got there first surfaces as 404.
    """
    removed = store.delete_campground(campground.id)
    flash(request, "success", "Successfully deleted campground.")
    return DeleteResponse(message="Campground deleted.", deleted_review_ids=removed)
