"""
Object storage for review images.

Images live in a private Supabase Storage bucket. Uploads return the object
key, which is what gets stored on the review; browsers get a signed URL for
it through the resolver in ``signed_urls``.
"""

import asyncio
import logging
import os
import time
from functools import lru_cache
from typing import List, Protocol

from supabase import Client, create_client

from .signed_urls import SignedUrlResolver

logger = logging.getLogger(__name__)

REVIEW_IMAGES_BUCKET = os.environ.get("REVIEW_IMAGES_BUCKET", "review-images")


class ImageStorageError(Exception):
    pass


class ImageStorage(Protocol):
    def upload(self, key: str, data: bytes, content_type: str) -> str:
        ...

    def remove(self, keys: List[str]) -> None:
        ...

    async def create_signed_url(self, key: str, expires_in: int) -> str:
        ...


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"


def image_key(user_id: int, filename: str) -> str:
    """``<user_id>/<milliseconds>.<ext>``, the extension taken from the upload."""
    return f"{user_id}/{int(time.time() * 1000)}.{_extension(filename)}"


def avatar_key(user_id: int, filename: str) -> str:
    # A fresh name per upload so browsers never show a cached old avatar
    return f"{user_id}/avatar-{int(time.time() * 1000)}.{_extension(filename)}"


class SupabaseImageStorage:
    def __init__(self, client: Client, bucket: str = REVIEW_IMAGES_BUCKET):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_env(cls) -> "SupabaseImageStorage":
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_KEY")
        if not url or not key:
            raise ImageStorageError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        logger.info(f"Using Supabase storage bucket {REVIEW_IMAGES_BUCKET}")
        return cls(create_client(url, key))

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.storage.from_(self.bucket).upload(
                path=key, file=data, file_options={"content-type": content_type}
            )
        except Exception as e:
            logger.error(f"Upload of {key} failed: {str(e)}")
            raise ImageStorageError(f"Upload failed: {str(e)}") from e
        return key

    def remove(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            self.client.storage.from_(self.bucket).remove(keys)
        except Exception as e:
            raise ImageStorageError(f"Remove failed: {str(e)}") from e

    async def create_signed_url(self, key: str, expires_in: int) -> str:
        # The sync client blocks, keep it off the event loop
        data = await asyncio.to_thread(
            self.client.storage.from_(self.bucket).create_signed_url, key, expires_in
        )
        return data.get("signedURL") or data.get("signedUrl")


@lru_cache
def get_image_storage() -> ImageStorage:
    return SupabaseImageStorage.from_env()


@lru_cache
def get_signed_url_resolver() -> SignedUrlResolver:
    """The process-wide resolver; its cache lives as long as the app."""
    return SignedUrlResolver(get_image_storage())
