"""Supabase-backed batch and photo repository."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from photo_wall.domain.photos import DELETED_FLAG, Batch, Photo
from photo_wall.errors import BatchAlreadyExistsError, ReferentialError, StorageError
from photo_wall.services.photos import PhotoRepository

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"

_PHOTO_COLUMNS = (
    "id, batch_id, original_url, thumbnail_url, uploader_name, comment, "
    "uploaded_at, order_index, original_filename"
)
_BATCH_COLUMNS = "id, uploader_name, comment, timestamp"

# LIKE treats "_" as a wildcard, so the flag's underscores are escaped.
_DELETED_PATTERN = DELETED_FLAG.replace("_", "\\_") + "*"
_NOT_DELETED_FILTER = f"comment.is.null,comment.not.like.{_DELETED_PATTERN}"


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for batch and photo persistence."""

    client: Client

    def create_batch(self, batch: Batch) -> None:
        """Insert a batch row."""
        query = self.client.table("batches").insert(
            {
                "id": batch.id,
                "uploader_name": batch.uploader_name,
                "comment": batch.comment,
                "timestamp": batch.timestamp,
            }
        )
        try:
            query.execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise BatchAlreadyExistsError(
                    f"Batch {batch.id} already exists"
                ) from exc
            raise StorageError("Failed to create batch") from exc
        except httpx.HTTPError as exc:
            raise StorageError("Failed to create batch") from exc

    def get_batch(self, batch_id: str) -> Batch | None:
        """Return a batch by id, if present."""
        rows = _run(
            self.client.table("batches")
            .select(_BATCH_COLUMNS)
            .eq("id", batch_id)
            .limit(1),
            "fetch batch",
        )
        if not rows:
            return None
        return _parse_batch(rows[0])

    def add_photo(self, photo: Photo) -> None:
        """Insert a photo row."""
        query = self.client.table("photos").insert(
            {
                "id": photo.id,
                "batch_id": photo.batch_id,
                "original_url": photo.original_url,
                "thumbnail_url": photo.thumbnail_url,
                "uploader_name": photo.uploader_name,
                "comment": photo.comment,
                "uploaded_at": photo.uploaded_at,
                "order_index": photo.order,
                "original_filename": photo.original_filename,
            }
        )
        try:
            query.execute()
        except APIError as exc:
            if exc.code == _FOREIGN_KEY_VIOLATION:
                raise ReferentialError(
                    f"Batch {photo.batch_id} does not exist"
                ) from exc
            raise StorageError("Failed to add photo") from exc
        except httpx.HTTPError as exc:
            raise StorageError("Failed to add photo") from exc

    def get_photo(self, photo_id: str) -> Photo | None:
        """Return a photo by id, if present."""
        rows = _run(
            self.client.table("photos")
            .select(_PHOTO_COLUMNS)
            .eq("id", photo_id)
            .limit(1),
            "fetch photo",
        )
        if not rows:
            return None
        return _parse_photo(rows[0])

    def get_recent_photos(
        self, limit: int, include_deleted: bool = False
    ) -> list[Photo]:
        """Return the newest photos first."""
        query = self.client.table("photos").select(_PHOTO_COLUMNS)
        if not include_deleted:
            query = query.or_(_NOT_DELETED_FILTER)
        rows = _run(
            query.order("uploaded_at", desc=True).limit(limit), "list recent photos"
        )
        return [_parse_photo(row) for row in rows]

    def get_total_photo_count(self, include_deleted: bool = False) -> int:
        """Return the number of photos."""
        query = self.client.table("photos").select("id", count="exact", head=True)
        if not include_deleted:
            query = query.or_(_NOT_DELETED_FILTER)
        try:
            response = query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StorageError("Failed to count photos") from exc
        return int(response.count or 0)

    def get_batch_photos(
        self, batch_id: str, include_deleted: bool = False
    ) -> list[Photo]:
        """Return the photos of one batch in upload order."""
        query = self.client.table("photos").select(_PHOTO_COLUMNS).eq(
            "batch_id", batch_id
        )
        if not include_deleted:
            query = query.or_(_NOT_DELETED_FILTER)
        rows = _run(query.order("order_index"), "list batch photos")
        return [_parse_photo(row) for row in rows]

    def update_photo_comment(self, photo_id: str, comment: str | None) -> None:
        """Overwrite the stored comment of a photo."""
        _run(
            self.client.table("photos")
            .update({"comment": comment})
            .eq("id", photo_id),
            "update photo comment",
        )

    def get_all_batches(self) -> list[Batch]:
        """Return all batches, newest first."""
        rows = _run(
            self.client.table("batches")
            .select(_BATCH_COLUMNS)
            .order("timestamp", desc=True),
            "list batches",
        )
        return [_parse_batch(row) for row in rows]


def _run(query: Any, action: str) -> list[dict[str, object]]:
    """Execute a query and return its rows, wrapping failures."""
    try:
        response = query.execute()
    except (APIError, httpx.HTTPError) as exc:
        logger.exception("Supabase query failed", extra={"action": action})
        raise StorageError(f"Failed to {action}") from exc
    return response.data or []


def _parse_batch(row: dict[str, object]) -> Batch:
    """Parse a batch row into a domain model."""
    comment = row.get("comment")
    return Batch(
        id=str(row["id"]),
        uploader_name=str(row.get("uploader_name", "")),
        comment=str(comment) if comment is not None else None,
        timestamp=int(row.get("timestamp") or 0),
    )


def _parse_photo(row: dict[str, object]) -> Photo:
    """Parse a photo row into a domain model."""
    comment = row.get("comment")
    filename = row.get("original_filename")
    return Photo(
        id=str(row["id"]),
        batch_id=str(row["batch_id"]),
        original_url=str(row.get("original_url", "")),
        thumbnail_url=str(row.get("thumbnail_url", "")),
        uploader_name=str(row.get("uploader_name", "")),
        comment=str(comment) if comment is not None else None,
        uploaded_at=int(row.get("uploaded_at") or 0),
        order=int(row.get("order_index") or 0),
        original_filename=str(filename) if filename else None,
    )
