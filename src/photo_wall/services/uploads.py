"""Upload orchestration: validate, store, persist, broadcast."""

import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Protocol

from photo_wall.config import DEFAULT_MAX_FILE_SIZE
from photo_wall.domain.photos import Photo
from photo_wall.errors import NotFoundError, UploadError, ValidationError
from photo_wall.services.broadcast import BroadcastHub
from photo_wall.services.photos import PhotoService, now_ms
from photo_wall.services.thumbnails import ThumbnailGenerator

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/heic",
        "image/heif",
    }
)

_EXTENSION_FALLBACKS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
}


class ImageStore(Protocol):
    """Object storage capability for photo bytes."""

    async def put_original(self, key: str, content: bytes, content_type: str) -> str:
        """Store the original image and return its public URL."""

    async def put_thumbnail(
        self, original_key: str, thumbnail_key: str, content: bytes, content_type: str
    ) -> str:
        """Store or derive the thumbnail and return its public URL."""

    def public_url(self, key: str) -> str:
        """Return the public URL for a stored key."""


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file as received from the client."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def file_extension(filename: str, content_type: str) -> str:
    """Return the extension for storage keys, without the dot."""
    suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower()
    if suffix:
        return suffix
    fallback = _EXTENSION_FALLBACKS.get(content_type.lower())
    if fallback:
        return fallback
    guessed = mimetypes.guess_extension(content_type) or ""
    return guessed.lstrip(".") or "bin"


@dataclass
class UploadService:
    """Turns an incoming file into a stored, persisted and broadcast photo."""

    photo_service: PhotoService
    image_store: ImageStore
    hub: BroadcastHub
    thumbnails: ThumbnailGenerator = field(default_factory=ThumbnailGenerator)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def validate(self, upload: IncomingFile | None, batch_id: str | None) -> None:
        """Reject missing fields, non-image types and oversized files."""
        if upload is None or not batch_id:
            raise ValidationError("Missing required fields")
        if (upload.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                "Only image files are allowed (JPEG, PNG, WebP, HEIC)"
            )
        if upload.size > self.max_file_size:
            limit_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(f"File size exceeds limit of {limit_mb:g}MB")

    async def handle_upload(
        self,
        upload: IncomingFile | None,
        batch_id: str | None,
        supplied_id: str | None = None,
    ) -> Photo:
        """Store one photo in a batch and notify live subscribers."""
        self.validate(upload, batch_id)

        batch = self.photo_service.get_batch(batch_id)
        if batch is None:
            raise NotFoundError("Batch not found")

        photo_id = supplied_id or str(uuid.uuid4())
        timestamp = now_ms()
        content_type = upload.content_type.lower()
        extension = file_extension(upload.filename, content_type)
        original_key = f"photos/{batch_id}/{photo_id}.{extension}"

        try:
            original_url = await self.image_store.put_original(
                original_key, upload.content, content_type
            )
            thumbnail = self.thumbnails.render(upload.content, content_type, extension)
            thumbnail_key = f"thumbnails/{batch_id}/{photo_id}.{thumbnail.extension}"
            thumbnail_url = await self.image_store.put_thumbnail(
                original_key, thumbnail_key, thumbnail.content, thumbnail.content_type
            )
            photo = Photo(
                id=photo_id,
                batch_id=batch_id,
                original_url=original_url,
                thumbnail_url=thumbnail_url,
                uploader_name=batch.uploader_name,
                comment=batch.comment,
                uploaded_at=timestamp,
                order=timestamp,
                original_filename=upload.filename or None,
            )
            self.photo_service.add_photo(photo)
        except Exception as exc:
            logger.exception(
                "Upload failed",
                extra={"batch_id": batch_id, "photo_id": photo_id},
            )
            raise UploadError("Failed to upload file") from exc

        logger.info(
            "Photo uploaded",
            extra={"batch_id": batch_id, "photo_id": photo_id, "bytes": upload.size},
        )
        await self.hub.broadcast(photo)
        return photo
