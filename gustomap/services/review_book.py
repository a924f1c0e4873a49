import logging
from typing import Any, Dict, List, Optional, Protocol

from ..schemas.review import ReviewCreate, ReviewRead
from .collection import ReviewCollection
from .signed_urls import ResolvedImageSet, SignedUrlResolver

logger = logging.getLogger(__name__)


class ReviewStore(Protocol):
    async def list_reviews(self) -> List[ReviewRead]:
        ...

    async def create_review(self, review: ReviewCreate) -> ReviewRead:
        ...

    async def update_review(self, review_id: str, patch: Dict[str, Any]) -> ReviewRead:
        ...

    async def set_public(self, review_id: str, value: bool) -> ReviewRead:
        ...

    async def delete_review(self, review_id: str) -> None:
        ...


class ReviewBook:
    """
    Keeps a ReviewCollection in sync with the backing store.

    Mutations go to the store first and touch the collection only once the
    store has confirmed them. A full fetch is applied only if nothing newer
    happened while it was in flight: no later fetch was started and no local
    mutation was applied.
    """

    def __init__(self, store: ReviewStore, resolver: Optional[SignedUrlResolver] = None):
        self.store = store
        self.resolver = resolver
        self.collection = ReviewCollection()
        self.loading = False
        self.error: Optional[str] = None
        self._generation = 0

    async def refresh(self) -> bool:
        """Reload everything from the store. Returns False if the result was discarded."""
        self._generation += 1
        generation = self._generation
        self.loading = True
        try:
            reviews = await self.store.list_reviews()
        except Exception as e:
            logger.error(f"Error fetching reviews: {str(e)}")
            if generation == self._generation:
                self.error = str(e)
                self.loading = False
            return False

        if generation != self._generation:
            logger.debug(f"Discarding stale review fetch {generation}")
            return False
        self.collection.replace_all(reviews)
        self.error = None
        self.loading = False
        return True

    def _applied(self) -> None:
        # Any fetch still in flight predates this mutation
        self._generation += 1
        self.loading = False

    async def add(self, review: ReviewCreate) -> ReviewRead:
        created = await self._call("create", self.store.create_review(review))
        self.collection.add(created)
        self._applied()
        return created

    async def update(self, review_id: str, patch: Dict[str, Any]) -> ReviewRead:
        updated = await self._call("update", self.store.update_review(review_id, patch))
        self._apply_confirmed(updated)
        return updated

    async def toggle_public(self, review_id: str, value: bool) -> ReviewRead:
        updated = await self._call("share", self.store.set_public(review_id, value))
        self._apply_confirmed(updated)
        return updated

    def _apply_confirmed(self, review: ReviewRead) -> None:
        # The store has the final word; a review we never loaded is simply added
        if self.collection.get(review.id) is None:
            self.collection.add(review)
        else:
            self.collection.update(review.id, review.model_dump(exclude={"id"}))
        self._applied()

    async def remove(self, review_id: str) -> None:
        await self._call("delete", self.store.delete_review(review_id))
        self.collection.remove(review_id)
        self._applied()

    async def _call(self, action: str, pending):
        try:
            return await pending
        except Exception as e:
            logger.error(f"Could not {action} review: {str(e)}")
            raise

    def images_for(self, review: ReviewRead) -> ResolvedImageSet:
        if self.resolver is None:
            raise RuntimeError("ReviewBook was created without a SignedUrlResolver")
        return ResolvedImageSet(self.resolver, review.image_refs)
