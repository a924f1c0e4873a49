"""
Async HTTP client for the GustoMap API.

``GustoMapClient`` is the backing store the ``ReviewBook`` talks to, and the
URL signer for a client-side ``SignedUrlResolver``.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .schemas.place import PlaceCandidate
from .schemas.review import ReviewCreate, ReviewRead, ReviewUpdate
from .services.signed_urls import SignedUrl

logger = logging.getLogger(__name__)


class GustoMapClient:
    def __init__(self, base_url: str = "http://localhost:8000", transport: Optional[httpx.AsyncBaseTransport] = None):
        self.http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=15.0)

    async def __aenter__(self) -> "GustoMapClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def login(self, username: str, password: str) -> None:
        response = await self.http.post("/api/token", data={"username": username, "password": password})
        response.raise_for_status()
        self.http.headers["Authorization"] = f"Bearer {response.json()['access_token']}"
        logger.debug(f"Logged in as {username}")

    # Reviews

    async def list_reviews(self) -> List[ReviewRead]:
        response = await self.http.get("/api/reviews/")
        response.raise_for_status()
        return [ReviewRead.model_validate(item) for item in response.json()]

    async def create_review(self, review: ReviewCreate) -> ReviewRead:
        response = await self.http.post("/api/reviews/", json=review.model_dump(mode="json"))
        response.raise_for_status()
        return ReviewRead.model_validate(response.json())

    async def update_review(self, review_id: str, patch: Dict[str, Any]) -> ReviewRead:
        body = ReviewUpdate(**patch).model_dump(mode="json", exclude_unset=True)
        response = await self.http.put(f"/api/reviews/{review_id}", json=body)
        response.raise_for_status()
        return ReviewRead.model_validate(response.json())

    async def set_public(self, review_id: str, value: bool) -> ReviewRead:
        response = await self.http.patch(f"/api/reviews/{review_id}/public", json={"is_public": value})
        response.raise_for_status()
        return ReviewRead.model_validate(response.json())

    async def delete_review(self, review_id: str) -> None:
        response = await self.http.delete(f"/api/reviews/{review_id}")
        response.raise_for_status()

    # Images and places

    async def create_signed_url(self, key: str, expires_in: int) -> SignedUrl:
        # The server picks the lifetime and may hand back a URL from its own
        # cache, so its expiry is what bounds ours
        response = await self.http.post("/api/images/signed-urls", json={"refs": [key]})
        response.raise_for_status()
        body = response.json()
        url = body["urls"][0]
        if url == key:
            raise ValueError(f"server could not sign {key}")
        return SignedUrl(url, body["expires_at"][0])

    async def search_places(self, query: str) -> List[PlaceCandidate]:
        response = await self.http.post("/api/places/search", json={"query": query})
        response.raise_for_status()
        return [PlaceCandidate.model_validate(item) for item in response.json()["results"]]
