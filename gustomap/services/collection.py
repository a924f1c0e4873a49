"""
Review collection view-model.

Holds the signed-in user's reviews in memory, keeps them in the canonical
order (visit date, else creation time, most recent first) and derives the
subset that the list and map views render from the active filters.
"""

import logging
from datetime import datetime, time, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..models import PlaceCategory, VisitStatus
from ..schemas.review import ListRow, MapMarker, ReviewRead, ReviewStats

logger = logging.getLogger(__name__)


class CategoryFilter(str, Enum):
    ALL = "all"
    RESTAURANTS = "restaurants"
    BARS = "bars"

class VisitFilter(str, Enum):
    ALL = "all"
    VISITED = "visited"
    WISHLIST = "wishlist"

class ViewMode(str, Enum):
    LIST = "list"
    MAP = "map"

class RatingDisplay(str, Enum):
    """How a review with rating 0 (an unrated wishlist entry) is shown."""
    STARS = "stars"                 # always draw the star row, 0 stars included
    HIDE_UNRATED = "hide_unrated"   # no star row at all for rating 0


BAR_CATEGORIES = (PlaceCategory.BAR, PlaceCategory.CAFE)
SEARCH_FIELDS = ("name", "location", "description", "city", "province", "region")
SORT_FIELDS = ("visit_date", "created_at")


def sort_key(review) -> datetime:
    """Visit date at midnight if the review has one, else its creation time."""
    if review.visit_date is not None:
        moment = datetime.combine(review.visit_date, time.min)
    else:
        moment = review.created_at
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def sort_reviews(reviews: Iterable) -> List:
    # sorted() is stable, so entries with equal dates keep their incoming order
    return sorted(reviews, key=sort_key, reverse=True)


def matches_category(review, category_filter: CategoryFilter) -> bool:
    if category_filter == CategoryFilter.RESTAURANTS:
        return review.category == PlaceCategory.RESTAURANT
    if category_filter == CategoryFilter.BARS:
        return review.category in BAR_CATEGORIES
    return True


def matches_visit(review, visit_filter: VisitFilter) -> bool:
    if visit_filter == VisitFilter.ALL:
        return True
    return review.visit_status.value == visit_filter.value


def normalize_search(search_text: Optional[str]) -> str:
    return (search_text or "").strip().casefold()


def matches_search(review, needle: str) -> bool:
    if not needle:
        return True
    for field in SEARCH_FIELDS:
        value = getattr(review, field, None)
        if value and needle in value.casefold():
            return True
    return False


def filter_reviews(
    reviews: Iterable,
    category_filter: CategoryFilter = CategoryFilter.ALL,
    visit_filter: VisitFilter = VisitFilter.ALL,
    search_text: str = "",
) -> List:
    """Keep the reviews passing all three predicates, in their given order."""
    needle = normalize_search(search_text)
    return [
        review for review in reviews
        if matches_category(review, category_filter)
        and matches_visit(review, visit_filter)
        and matches_search(review, needle)
    ]


def review_stats(reviews: Iterable) -> ReviewStats:
    """
    Aggregate counters for the stats bar.

    Category counts cover every review; the average rating only considers
    visited places, since wishlist entries are unrated.
    """
    reviews = list(reviews)
    visited = [r for r in reviews if r.visit_status == VisitStatus.VISITED]
    by_category = {category: 0 for category in PlaceCategory}
    for review in reviews:
        by_category[review.category] += 1

    average = sum(r.rating for r in visited) / len(visited) if visited else 0.0
    return ReviewStats(
        visited=len(visited),
        wishlist=len(reviews) - len(visited),
        restaurants=by_category[PlaceCategory.RESTAURANT],
        bars=sum(by_category[c] for c in BAR_CATEGORIES),
        by_category=by_category,
        average_rating=average,
    )


def display_rating(review, mode: RatingDisplay) -> Optional[int]:
    if mode == RatingDisplay.HIDE_UNRATED and not review.rating:
        return None
    return review.rating


def cover_image(review) -> Optional[str]:
    return review.image_refs[0] if review.image_refs else None


def list_rows(reviews: Iterable, mode: RatingDisplay = RatingDisplay.STARS) -> List[ListRow]:
    return [
        ListRow(
            id=r.id,
            name=r.name,
            category=r.category,
            location=r.location,
            visit_status=r.visit_status,
            rating=display_rating(r, mode),
            cover=cover_image(r),
        )
        for r in reviews
    ]


def map_markers(reviews: Iterable, mode: RatingDisplay = RatingDisplay.HIDE_UNRATED) -> List[MapMarker]:
    """Markers for the reviews that carry coordinates."""
    return [
        MapMarker(
            id=r.id,
            name=r.name,
            category=r.category,
            latitude=r.latitude,
            longitude=r.longitude,
            rating=display_rating(r, mode),
            cover=cover_image(r),
        )
        for r in reviews
        if r.latitude is not None and r.longitude is not None
    ]


class ReviewCollection:
    """
    In-memory reviews plus filter state, with ``visible_reviews`` derived.

    ``visible_reviews`` is recomputed whenever the reviews or one of the
    filters change, and subscribers are called with the new list. Switching
    the view mode does not touch the derived list, only which renderer
    ``render`` uses.
    """

    def __init__(self, reviews: Iterable[ReviewRead] = ()):
        self.reviews: List[ReviewRead] = sort_reviews(reviews)
        self.category_filter = CategoryFilter.ALL
        self.visit_filter = VisitFilter.ALL
        self.search_text = ""
        self.view_mode = ViewMode.LIST
        self.visible_reviews: List[ReviewRead] = list(self.reviews)
        self._listeners: List[Callable[[List[ReviewRead]], None]] = []

    def subscribe(self, listener: Callable[[List[ReviewRead]], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _recompute(self) -> None:
        self.visible_reviews = filter_reviews(
            self.reviews, self.category_filter, self.visit_filter, self.search_text
        )
        for listener in list(self._listeners):
            listener(self.visible_reviews)

    # Filters

    def set_category_filter(self, value: CategoryFilter) -> None:
        self.category_filter = CategoryFilter(value)
        self._recompute()

    def set_visit_filter(self, value: VisitFilter) -> None:
        self.visit_filter = VisitFilter(value)
        self._recompute()

    def set_search_text(self, value: str) -> None:
        self.search_text = value or ""
        self._recompute()

    def set_view_mode(self, value: ViewMode) -> None:
        self.view_mode = ViewMode(value)

    # Mutations

    def replace_all(self, reviews: Iterable[ReviewRead]) -> None:
        self.reviews = sort_reviews(reviews)
        logger.debug(f"Collection now holds {len(self.reviews)} reviews")
        self._recompute()

    def get(self, review_id: str) -> Optional[ReviewRead]:
        return next((r for r in self.reviews if r.id == review_id), None)

    def add(self, review: ReviewRead) -> None:
        self.reviews = sort_reviews([review] + self.reviews)
        self._recompute()

    def update(self, review_id: str, patch: Dict[str, Any]) -> ReviewRead:
        if "id" in patch and patch["id"] != review_id:
            raise ValueError("The id of a review cannot be changed")
        for index, current in enumerate(self.reviews):
            if current.id == review_id:
                break
        else:
            raise KeyError(review_id)

        updated = current.model_copy(update=patch)
        self.reviews[index] = updated
        if any(getattr(current, f) != getattr(updated, f) for f in SORT_FIELDS):
            self.reviews = sort_reviews(self.reviews)
        self._recompute()
        return updated

    def remove(self, review_id: str) -> None:
        self.reviews = [r for r in self.reviews if r.id != review_id]
        self._recompute()

    def toggle_public(self, review_id: str, value: bool) -> ReviewRead:
        return self.update(review_id, {"is_public": value})

    # Derived

    @property
    def stats(self) -> ReviewStats:
        return review_stats(self.reviews)

    def render(self) -> List:
        if self.view_mode == ViewMode.MAP:
            return map_markers(self.visible_reviews)
        return list_rows(self.visible_reviews)
