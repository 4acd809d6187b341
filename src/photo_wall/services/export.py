"""Export of photo metadata for organizers."""

from dataclasses import dataclass

from photo_wall.domain.photos import (
    Photo,
    effective_comment,
    is_deleted,
    serialize_batch,
)
from photo_wall.services.photos import PhotoService


@dataclass
class ExportService:
    """Builds download manifests. Deleted photos are never exported."""

    photo_service: PhotoService

    def export_batch(self, batch_id: str) -> list[dict[str, object]]:
        """Return the exportable photos of one batch in upload order."""
        photos = self.photo_service.batch_photos(batch_id, include_deleted=True)
        return [_export_photo(photo) for photo in photos if not is_deleted(photo)]

    def export_all(self) -> list[dict[str, object]]:
        """Return every batch that still has photos, newest batch first."""
        exported = []
        for batch in self.photo_service.all_batches():
            photos = self.export_batch(batch.id)
            if photos:
                exported.append({"batch": serialize_batch(batch), "photos": photos})
        return exported


def _export_photo(photo: Photo) -> dict[str, object]:
    return {
        "id": photo.id,
        "originalUrl": photo.original_url,
        "originalFilename": photo.original_filename or f"photo-{photo.id}.jpg",
        "uploaderName": photo.uploader_name,
        "comment": effective_comment(photo),
        "uploadedAt": photo.uploaded_at,
        "batchId": photo.batch_id,
    }
