"""
Signed URL resolution for review images.

Review images are stored either as absolute URLs (legacy uploads, photos
prefilled from place search) or as keys in the private review images bucket.
Keys have to be exchanged for time-limited signed URLs before a browser can
fetch them. ``SignedUrlResolver`` owns the cache of issued URLs and
``ResolvedImageSet`` keeps the URLs currently on screen for one gallery.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

# Lifetime requested from the object store, and how long we trust a URL for.
# The gap keeps a URL from expiring while a page is still rendering it.
SIGNED_URL_TTL = 3600
CACHE_SAFETY_MARGIN = 100

URL_SCHEMES = ("http://", "https://", "data:", "blob:")


@dataclass(frozen=True)
class RemoteImage:
    url: str

@dataclass(frozen=True)
class StorageImage:
    key: str

ImageRef = Union[RemoteImage, StorageImage]


def parse_image_ref(value: Union[str, RemoteImage, StorageImage]) -> ImageRef:
    if isinstance(value, (RemoteImage, StorageImage)):
        return value
    if value.lower().startswith(URL_SCHEMES):
        return RemoteImage(value)
    return StorageImage(value)


def storage_keys(values: Sequence[str]) -> List[str]:
    """The entries of ``values`` that live in our own bucket."""
    return [ref.key for ref in map(parse_image_ref, values) if isinstance(ref, StorageImage)]


class UrlSigner(Protocol):
    """
    Anything that can sign a storage key.

    Returns either the bare URL, valid for ``expires_in`` seconds from the
    request, or a ``SignedUrl`` carrying the moment the store stops honouring
    it (a signer that relays someone else's cache knows better than we do).
    """

    async def create_signed_url(self, key: str, expires_in: int) -> Union[str, "SignedUrl"]:
        ...


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_at: Optional[float] = None  # store expiry, None for remote URLs and fallbacks


@dataclass
class CachedUrl:
    url: str
    expires_at: float
    signed_until: float


class SignedUrlResolver:
    """
    Turns image references into URLs a browser can load.

    Args:
        signer: anything with an async ``create_signed_url(key, expires_in)``
        clock: returns the current time in seconds, ``time.time`` by default
        ttl: lifetime requested for each signed URL
        safety_margin: seconds before the store's expiry at which a cached
            URL is considered expired
    """

    def __init__(
        self,
        signer: UrlSigner,
        clock: Callable[[], float] = time.time,
        ttl: int = SIGNED_URL_TTL,
        safety_margin: int = CACHE_SAFETY_MARGIN,
    ):
        if safety_margin >= ttl:
            raise ValueError("safety_margin must be shorter than ttl")
        self.signer = signer
        self.clock = clock
        self.ttl = ttl
        self.safety_margin = safety_margin
        self._cache: Dict[str, CachedUrl] = {}
        self._pending: Dict[str, "asyncio.Future[SignedUrl]"] = {}

    def _cached_entry(self, key: str) -> Optional[CachedUrl]:
        entry = self._cache.get(key)
        if entry and entry.expires_at > self.clock():
            return entry
        return None

    def cached(self, key: str) -> Optional[str]:
        entry = self._cached_entry(key)
        return entry.url if entry else None

    async def resolve(self, refs: Sequence[Union[str, ImageRef]]) -> List[str]:
        """Resolve a batch in parallel. Order and length follow ``refs``."""
        return [signed.url for signed in await self.resolve_signed(refs)]

    async def resolve_signed(self, refs: Sequence[Union[str, ImageRef]]) -> List[SignedUrl]:
        """Like ``resolve``, keeping the store's expiry next to each URL."""
        return list(await asyncio.gather(*(self.resolve_signed_one(ref) for ref in refs)))

    async def resolve_one(self, value: Union[str, ImageRef]) -> str:
        return (await self.resolve_signed_one(value)).url

    async def resolve_signed_one(self, value: Union[str, ImageRef]) -> SignedUrl:
        ref = parse_image_ref(value)
        if isinstance(ref, RemoteImage):
            return SignedUrl(ref.url)
        if not ref.key:
            return SignedUrl(ref.key)

        entry = self._cached_entry(ref.key)
        if entry is not None:
            return SignedUrl(entry.url, entry.signed_until)

        try:
            return await asyncio.shield(self._sign(ref.key))
        except Exception as e:
            # Renders as a broken image instead of failing the whole page
            logger.warning(f"Could not sign storage key {ref.key!r}: {str(e)}")
            return SignedUrl(ref.key)

    def _sign(self, key: str) -> "asyncio.Future[SignedUrl]":
        # Concurrent requests for the same key share one round-trip
        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(key))
            self._pending[key] = pending
            pending.add_done_callback(lambda _: self._pending.pop(key, None))
        return pending

    async def _fetch(self, key: str) -> SignedUrl:
        requested_at = self.clock()
        signed = await self.signer.create_signed_url(key, self.ttl)
        if not isinstance(signed, SignedUrl):
            signed = SignedUrl(signed)
        if not signed.url:
            raise ValueError("object store returned an empty URL")

        signed_until = requested_at + self.ttl
        if signed.expires_at is not None:
            signed_until = min(signed_until, signed.expires_at)
        expires_at = signed_until - self.safety_margin
        if expires_at > requested_at:
            self._cache[key] = CachedUrl(signed.url, expires_at, signed_until)
            logger.debug(f"Signed {key!r}, cached for {expires_at - requested_at:.0f}s")
        else:
            logger.debug(f"Signed {key!r} expires within the safety margin, not caching it")
        return SignedUrl(signed.url, signed_until)


class ResolvedImageSet:
    """
    The resolved URLs for one gallery, kept in step with the latest request.

    Every ``load`` takes a new token. A batch that settles after a newer
    ``load`` has started is dropped, so a slow earlier request can never
    overwrite the output of a later one.
    """

    def __init__(self, resolver: SignedUrlResolver, refs: Sequence[str] = ()):
        self.resolver = resolver
        self.refs: Tuple[str, ...] = tuple(refs)
        self.urls: List[str] = list(refs)
        self._token = 0
        self._listeners: List[Callable[[List[str]], None]] = []

    def subscribe(self, listener: Callable[[List[str]], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    async def load(self, refs: Sequence[str]) -> bool:
        """Resolve ``refs`` and publish them. Returns False if superseded."""
        self._token += 1
        token = self._token
        self.refs = tuple(refs)

        if not refs:
            self._publish([])
            return True

        resolved = await self.resolver.resolve(refs)
        if token != self._token:
            logger.debug(f"Dropping superseded image batch {token} (latest is {self._token})")
            return False
        self._publish(resolved)
        return True

    def _publish(self, urls: List[str]) -> None:
        self.urls = urls
        for listener in list(self._listeners):
            listener(urls)
