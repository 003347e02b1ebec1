"""
api/dependencies.py -- Ownership guards wired into FastAPI.

These are the RequireListingOwnership and RequireReviewOwnership stages of
the guard chain. Each depends on login_required, so FastAPI always resolves
authentication first and stops at the first guard that raises.

They live in api/ rather than auth/ because they need the campground store;
auth/ never imports campgrounds/.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from auth.context import RequestContext
from auth.dependencies import get_context, login_required
from auth.guards import require_owner
from auth.models import User
from campgrounds.models import Campground, Review
from campgrounds.store import CampgroundStore


def get_campground_store(request: Request) -> CampgroundStore:
    return request.app.state.campground_store


def campground_owner_required(
    campground_id: int,
    user: User = Depends(login_required),
    ctx: RequestContext = Depends(get_context),
    store: CampgroundStore = Depends(get_campground_store),
) -> Campground:
    """Return the campground if the current user owns it.

    Non-owners are sent back to the campground index.
    """
    return require_owner(
        ctx,
        campground_id,
        store.get_campground,
        resource="Campground",
        redirect_to="/campgrounds",
    )


def review_owner_required(
    campground_id: int,
    review_id: int,
    user: User = Depends(login_required),
    ctx: RequestContext = Depends(get_context),
    store: CampgroundStore = Depends(get_campground_store),
) -> Review:
    """Return the review if the current user wrote it.

    The lookup only finds reviews that belong to the campground in the path,
    so a review id paired with the wrong campground is NotFound. Non-authors
    are sent back to the campground page.
    """

    def lookup(rid: int) -> Optional[Review]:
        review = store.get_review(rid)
        if review is None or review.campground_id != campground_id:
            return None
        return review

    return require_owner(
        ctx,
        review_id,
        lookup,
        resource="Review",
        redirect_to=f"/campgrounds/{campground_id}",
    )
