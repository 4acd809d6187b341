"""Domain models for batches and photos."""

from dataclasses import dataclass, replace

DELETED_FLAG = "__DELETED__"


@dataclass(frozen=True)
class Batch:
    """An upload session started by one guest."""

    id: str
    uploader_name: str
    comment: str | None
    timestamp: int


@dataclass(frozen=True)
class Photo:
    """A stored photo and its metadata.

    ``comment`` is the stored value and may carry the deletion flag; use
    ``effective_comment`` for the user-facing text.
    """

    id: str
    batch_id: str
    original_url: str
    thumbnail_url: str
    uploader_name: str
    comment: str | None
    uploaded_at: int
    order: int
    original_filename: str | None = None


def is_deleted(photo: Photo) -> bool:
    """Return true when the photo is soft-deleted."""
    return bool(photo.comment) and photo.comment.startswith(DELETED_FLAG)


def effective_comment(photo: Photo) -> str | None:
    """Return the user comment with the deletion flag stripped."""
    if photo.comment is None:
        return None
    return _strip_flag(photo.comment)


def set_deleted(
    photo: Photo, deleted: bool, explicit_comment: str | None = None
) -> str | None:
    """Return the stored comment encoding the requested deletion state.

    Restoring keeps only ``explicit_comment``; callers that want the old
    comment back must pass it.
    """
    if explicit_comment is not None:
        explicit_comment = _strip_flag(explicit_comment)
    if deleted:
        if explicit_comment is not None:
            comment = explicit_comment
        else:
            comment = effective_comment(photo) or ""
        return f"{DELETED_FLAG}{comment}"
    return explicit_comment


def _strip_flag(comment: str) -> str:
    while comment.startswith(DELETED_FLAG):
        comment = comment[len(DELETED_FLAG) :]
    return comment


def with_comment(photo: Photo, comment: str | None) -> Photo:
    """Return a copy of the photo with a new stored comment."""
    return replace(photo, comment=comment)


def serialize_batch(batch: Batch) -> dict[str, object]:
    """Serialize a batch for JSON responses."""
    payload: dict[str, object] = {
        "id": batch.id,
        "uploaderName": batch.uploader_name,
        "timestamp": batch.timestamp,
    }
    if batch.comment is not None:
        payload["comment"] = batch.comment
    return payload


def serialize_photo(photo: Photo) -> dict[str, object]:
    """Serialize a photo for JSON responses and live events."""
    payload: dict[str, object] = {
        "id": photo.id,
        "batchId": photo.batch_id,
        "originalUrl": photo.original_url,
        "thumbnailUrl": photo.thumbnail_url,
        "uploaderName": photo.uploader_name,
        "uploadedAt": photo.uploaded_at,
        "order": photo.order,
    }
    comment = effective_comment(photo)
    if comment is not None:
        payload["comment"] = comment
    if photo.original_filename is not None:
        payload["originalFilename"] = photo.original_filename
    return payload
