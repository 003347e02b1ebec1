"""
campgrounds/store.py -- SQLAlchemy-backed persistence for campgrounds and reviews.

Uses SQLAlchemy Core (not ORM) so the dataclasses in campgrounds/models.py
remain the authoritative domain representation.

Pattern: Repository + Data Mapper. CampgroundStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Containment:
  campground_reviews is the ordered review list of each campground. Its
  autoincrement id is the append order. UNIQUE(review_id) means a review sits
  in exactly one campground and can never be listed twice.

Cascade:
  Deletes are explicit store operations, each a single transaction
  (engine.begin()), so a caller never observes a half-applied cascade:
    delete_campground -- removes the campground, its links, and every review
                         it contained. Nothing outside that campground is touched.
    delete_review     -- removes the link first, then the review row, so no
                         campground is ever left pointing at a missing review.
  A second delete of the same row finds nothing and raises NotFound; the
  transaction rolls back without side effects.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CampgroundStore()                      # SQLite default
    cid = store.create_campground(campground)
    rid = store.add_review(cid, review)
    removed = store.delete_campground(cid)         # -> [rid]
    store.close()
"""

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine

from campgrounds.models import Campground, Review
from core.errors import NotFound, ValidationFailure

logger = logging.getLogger("campreview.campgrounds")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'campreview_campgrounds.db'}"

MIN_RATING = 0
MAX_RATING = 5

# SQLite INTEGER is signed 64-bit. Larger ids cannot name a row and cannot
# be bound as query parameters.
_MAX_ROW_ID = 2**63 - 1

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_campgrounds = Table(
    "campgrounds",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("price", Float, nullable=False),
    Column("description", Text, nullable=False),
    Column("location", String(255), nullable=False),
    Column("image", Text, nullable=False),
    Column("owner_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_reviews = Table(
    "reviews",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("body", Text, nullable=False),
    Column("rating", Integer, nullable=False),
    Column("owner_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_links = Table(
    "campground_reviews",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),  # append order
    Column("campground_id", Integer, nullable=False, index=True),
    Column("review_id", Integer, nullable=False),
    UniqueConstraint("review_id", name="uq_review_single_campground"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _storable_id(value: int) -> bool:
    return -_MAX_ROW_ID - 1 <= value <= _MAX_ROW_ID


def _validate_campground(title, price, description, location, image) -> dict:
    """Return the cleaned field dict or raise ValidationFailure.

    Every field is required on create and on update (updates are full
    replacements, never partial).
    """
    fields = {"title": title, "description": description, "location": location, "image": image}
    missing = [name for name, value in fields.items() if not isinstance(value, str) or not value.strip()]
    if price is None or not _is_number(price):
        missing.insert(1, "price")
    if missing:
        raise ValidationFailure("All campground fields are required.", detail=f"missing: {', '.join(missing)}")
    if not math.isfinite(price):
        raise ValidationFailure("Price must be a finite number.")
    if price < 0:
        raise ValidationFailure("Price must not be negative.")
    cleaned = {name: value.strip() for name, value in fields.items()}
    cleaned["price"] = float(price)
    return cleaned


def _validate_review(body, rating) -> None:
    if not isinstance(body, str) or not body.strip():
        raise ValidationFailure("Review body and rating are required.", detail="missing: body")
    if rating is None or isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationFailure("Review body and rating are required.", detail="missing: rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        # Rejected, never clamped.
        raise ValidationFailure(f"Rating must be between {MIN_RATING} and {MAX_RATING}.")


def rating_summary(reviews: list[Review]) -> tuple[int, Optional[float]]:
    """Return (review_count, average_rating) for a campground's reviews.

    average_rating is None when there are no reviews, so "no ratings yet"
    is distinguishable from an average of 0.
    """
    if not reviews:
        return 0, None
    return len(reviews), round(sum(r.rating for r in reviews) / len(reviews), 2)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CampgroundStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # The same connection may be used from different threads of the
            # ASGI server's thread pool.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Campgrounds
    # ------------------------------------------------------------------

    def create_campground(self, campground: Campground) -> int:
        """Validate and insert a campground. Returns its assigned ID.

        The owner is whoever created it. Any review_ids on the input are
        ignored; reviews are only attached through add_review().
        """
        if campground.owner_id is None:
            raise ValidationFailure("A campground needs an owner.")
        fields = _validate_campground(
            campground.title, campground.price, campground.description, campground.location, campground.image
        )
        with self.engine.connect() as conn:
            result = conn.execute(
                _campgrounds.insert().values(**fields, owner_id=campground.owner_id, created_at=_now_iso())
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_campground(self, campground_id: int) -> Optional[Campground]:
        """Fetch a single campground with its ordered review_ids. Returns None if not found."""
        if not _storable_id(campground_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_campgrounds.select().where(_campgrounds.c.id == campground_id)).fetchone()
            if row is None:
                return None
            review_ids = [
                r.review_id
                for r in conn.execute(
                    select(_links.c.review_id).where(_links.c.campground_id == campground_id).order_by(_links.c.id)
                )
            ]
        return _row_to_campground(row, review_ids)

    def list_campgrounds(self) -> list[Campground]:
        """Return all campgrounds, newest first, each with its review_ids."""
        with self.engine.connect() as conn:
            rows = conn.execute(_campgrounds.select().order_by(_campgrounds.c.id.desc())).fetchall()
            link_rows = conn.execute(select(_links.c.campground_id, _links.c.review_id).order_by(_links.c.id)).fetchall()
        by_campground: dict[int, list[int]] = {}
        for link in link_rows:
            by_campground.setdefault(link.campground_id, []).append(link.review_id)
        return [_row_to_campground(r, by_campground.get(r.id, [])) for r in rows]

    def replace_campground(
        self,
        campground_id: int,
        *,
        title: str,
        price: float,
        description: str,
        location: str,
        image: str,
    ) -> Campground:
        """Replace all five editable fields of a campground.

        Owner and reviews are untouched. Raises ValidationFailure if any field
        is missing and NotFound if the campground does not exist.
        """
        fields = _validate_campground(title, price, description, location, image)
        if not _storable_id(campground_id):
            raise NotFound("Campground not found.")
        with self.engine.connect() as conn:
            result = conn.execute(_campgrounds.update().where(_campgrounds.c.id == campground_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("Campground not found.")
        return self.get_campground(campground_id)

    def delete_campground(self, campground_id: int) -> list[int]:
        """Delete a campground and every review it contains.

        Returns the ids of the reviews removed. Raises NotFound if the
        campground does not exist (including when a concurrent request
        deleted it first); in that case nothing is changed.
        """
        if not _storable_id(campground_id):
            raise NotFound("Campground not found.")
        with self.engine.begin() as conn:
            review_ids = [
                r.review_id
                for r in conn.execute(
                    select(_links.c.review_id).where(_links.c.campground_id == campground_id).order_by(_links.c.id)
                )
            ]
            if review_ids:
                conn.execute(_links.delete().where(_links.c.campground_id == campground_id))
                conn.execute(_reviews.delete().where(_reviews.c.id.in_(review_ids)))
            result = conn.execute(_campgrounds.delete().where(_campgrounds.c.id == campground_id))
            if result.rowcount == 0:
                raise NotFound("Campground not found.")
        logger.info("Deleted campground %d with %d review(s)", campground_id, len(review_ids))
        return review_ids

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def add_review(self, campground_id: int, review: Review) -> int:
        """Validate a review, insert it, and append it to the campground.

        Both writes share one transaction: either the review exists and is
        listed on the campground, or neither happened.
        Raises ValidationFailure for a missing body or a rating outside
        0..5, NotFound if the campground does not exist.
        """
        _validate_review(review.body, review.rating)
        if not _storable_id(campground_id):
            raise NotFound("Campground not found.")
        with self.engine.begin() as conn:
            exists = conn.execute(select(_campgrounds.c.id).where(_campgrounds.c.id == campground_id)).fetchone()
            if exists is None:
                raise NotFound("Campground not found.")
            result = conn.execute(
                _reviews.insert().values(
                    body=review.body.strip(),
                    rating=review.rating,
                    owner_id=review.owner_id,
                    created_at=_now_iso(),
                )
            )
            review_id = result.inserted_primary_key[0]
            conn.execute(_links.insert().values(campground_id=campground_id, review_id=review_id))
        return review_id

    def get_review(self, review_id: int) -> Optional[Review]:
        """Fetch a review with the id of the campground it belongs to. Returns None if not found."""
        if not _storable_id(review_id):
            return None
        stmt = (
            select(_reviews, _links.c.campground_id)
            .select_from(_reviews.outerjoin(_links, _links.c.review_id == _reviews.c.id))
            .where(_reviews.c.id == review_id)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_review(row) if row is not None else None

    def list_reviews(self, campground_id: int) -> list[Review]:
        """Return a campground's reviews in the order they were added.

        Raises NotFound if the campground does not exist, so "no reviews"
        and "no campground" are distinguishable.
        """
        if not _storable_id(campground_id):
            raise NotFound("Campground not found.")
        stmt = (
            select(_reviews, _links.c.campground_id)
            .select_from(_reviews.join(_links, _links.c.review_id == _reviews.c.id))
            .where(_links.c.campground_id == campground_id)
            .order_by(_links.c.id)
        )
        with self.engine.connect() as conn:
            exists = conn.execute(select(_campgrounds.c.id).where(_campgrounds.c.id == campground_id)).fetchone()
            if exists is None:
                raise NotFound("Campground not found.")
            rows = conn.execute(stmt).fetchall()
        return [_row_to_review(r) for r in rows]

    def delete_review(self, campground_id: int, review_id: int) -> None:
        """Detach a review from its campground and delete it.

        Raises NotFound if the review is not listed on that campground.
        """
        if not (_storable_id(campground_id) and _storable_id(review_id)):
            raise NotFound("Review not found.")
        with self.engine.begin() as conn:
            result = conn.execute(
                _links.delete().where((_links.c.campground_id == campground_id) & (_links.c.review_id == review_id))
            )
            if result.rowcount == 0:
                raise NotFound("Review not found.")
            conn.execute(_reviews.delete().where(_reviews.c.id == review_id))
        logger.info("Deleted review %d from campground %d", review_id, campground_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_campground(row, review_ids: list[int]) -> Campground:
    return Campground(
        id=row.id,
        title=row.title,
        price=row.price,
        description=row.description,
        location=row.location,
        image=row.image,
        owner_id=row.owner_id,
        review_ids=review_ids,
        created_at=row.created_at,
    )


def _row_to_review(row) -> Review:
    return Review(
        id=row.id,
        body=row.body,
        rating=row.rating,
        owner_id=row.owner_id,
        campground_id=row.campground_id,
        created_at=row.created_at,
    )
