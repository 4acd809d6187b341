"""Batch and photo lifecycle services."""

import logging
import time
from dataclasses import dataclass
from typing import Protocol

from photo_wall.domain.photos import (
    Batch,
    Photo,
    effective_comment,
    set_deleted,
    with_comment,
)
from photo_wall.errors import BatchAlreadyExistsError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class PhotoRepository(Protocol):
    """Persistence interface for batches and photos."""

    def create_batch(self, batch: Batch) -> None:
        """Insert a batch; raise BatchAlreadyExistsError on a duplicate id."""

    def get_batch(self, batch_id: str) -> Batch | None:
        """Return a batch by id, if present."""

    def add_photo(self, photo: Photo) -> None:
        """Insert a photo; raise ReferentialError for an unknown batch."""

    def get_photo(self, photo_id: str) -> Photo | None:
        """Return a photo by id, if present."""

    def get_recent_photos(
        self, limit: int, include_deleted: bool = False
    ) -> list[Photo]:
        """Return the newest photos first."""

    def get_total_photo_count(self, include_deleted: bool = False) -> int:
        """Return the number of photos."""

    def get_batch_photos(
        self, batch_id: str, include_deleted: bool = False
    ) -> list[Photo]:
        """Return the photos of one batch in upload order."""

    def update_photo_comment(self, photo_id: str, comment: str | None) -> None:
        """Overwrite the stored comment of a photo."""

    def get_all_batches(self) -> list[Batch]:
        """Return all batches, newest first."""


def now_ms() -> int:
    """Return the current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class PhotoService:
    """Application service for the batch and photo lifecycle."""

    repository: PhotoRepository

    def create_batch(
        self, batch_id: str, uploader_name: str, comment: str | None = None
    ) -> tuple[Batch, bool]:
        """Create a batch, returning ``(batch, existing)``.

        A batch id that is already taken is not an error: the stored batch is
        returned with ``existing=True``. This also covers a concurrent request
        winning the insert between our lookup and our insert.
        """
        batch_id = (batch_id or "").strip()
        uploader_name = (uploader_name or "").strip()
        if not batch_id or not uploader_name:
            raise ValidationError("Missing required fields")

        existing = self.repository.get_batch(batch_id)
        if existing:
            return existing, True

        batch = Batch(
            id=batch_id,
            uploader_name=uploader_name,
            comment=comment or None,
            timestamp=now_ms(),
        )
        try:
            self.repository.create_batch(batch)
        except BatchAlreadyExistsError:
            logger.info("Batch created concurrently", extra={"batch_id": batch_id})
            winner = self.repository.get_batch(batch_id)
            if winner is None:
                raise
            return winner, True
        return batch, False

    def get_batch(self, batch_id: str) -> Batch | None:
        return self.repository.get_batch(batch_id)

    def get_photo(self, photo_id: str) -> Photo | None:
        return self.repository.get_photo(photo_id)

    def add_photo(self, photo: Photo) -> None:
        self.repository.add_photo(photo)

    def list_recent(
        self, limit: int = 100, include_deleted: bool = False
    ) -> list[Photo]:
        """Return recent photos, newest first."""
        return self.repository.get_recent_photos(limit, include_deleted)

    def total_count(self, include_deleted: bool = False) -> int:
        return self.repository.get_total_photo_count(include_deleted)

    def batch_photos(
        self, batch_id: str, include_deleted: bool = False
    ) -> list[Photo]:
        return self.repository.get_batch_photos(batch_id, include_deleted)

    def all_batches(self) -> list[Batch]:
        return self.repository.get_all_batches()

    def set_photo_deleted(self, photo_id: str, deleted: bool) -> Photo:
        """Toggle the soft-delete flag of a photo and return the updated photo."""
        photo = self.repository.get_photo(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        comment = set_deleted(photo, deleted, effective_comment(photo) or None)
        self.repository.update_photo_comment(photo_id, comment)
        logger.info(
            "Photo deletion toggled",
            extra={"photo_id": photo_id, "deleted": deleted},
        )
        return with_comment(photo, comment)
