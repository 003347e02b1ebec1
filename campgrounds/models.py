"""
campgrounds/models.py -- Domain dataclasses for campgrounds and reviews.

These are pure data containers with zero logic. Validation, ordering of
review_ids, and the cascade rules live in campgrounds/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Campground:
    """A listed campground.

    review_ids is the ordered list of reviews the campground contains, oldest
    first. The campground owns them: deleting the campground deletes them.

    id is None before the record is written to the database.
    """

    title: str
    price: float
    description: str
    location: str
    image: str
    owner_id: int
    id: Optional[int] = None
    review_ids: list[int] = field(default_factory=list)
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Review:
    """A rated comment on one campground.

    owner_id is the author. It is only used for the review-ownership check;
    the review's lifetime is bound to campground_id, not to its author.
    """

    body: str
    rating: int  # 0..5 inclusive
    owner_id: int
    id: Optional[int] = None
    campground_id: Optional[int] = None
    created_at: str = ""
