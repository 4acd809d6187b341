"""Supabase Storage implementation of the image store."""

import logging
from dataclasses import dataclass

from supabase import Client

from photo_wall.services.uploads import ImageStore

logger = logging.getLogger(__name__)


@dataclass
class SupabaseImageStore(ImageStore):
    """Stores originals and thumbnails as separate objects in one bucket."""

    client: Client
    bucket: str
    public_base_url: str | None = None

    async def put_original(self, key: str, content: bytes, content_type: str) -> str:
        """Upload the original image bytes."""
        self._put(key, content, content_type)
        return self.public_url(key)

    async def put_thumbnail(
        self, original_key: str, thumbnail_key: str, content: bytes, content_type: str
    ) -> str:
        """Upload the thumbnail bytes under their own key."""
        self._put(thumbnail_key, content, content_type)
        return self.public_url(thumbnail_key)

    def public_url(self, key: str) -> str:
        """Return the public URL, preferring the configured CDN base."""
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        return self.client.storage.from_(self.bucket).get_public_url(key)

    def _put(self, key: str, content: bytes, content_type: str) -> None:
        logger.info("Uploading object", extra={"bucket": self.bucket, "key": key})
        self.client.storage.from_(self.bucket).upload(
            key,
            content,
            file_options={"content-type": content_type, "upsert": "true"},
        )
