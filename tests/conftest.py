"""Shared test fixtures."""

from dataclasses import dataclass, field

import pytest

from photo_wall.config import Settings
from photo_wall.containers import AppContainer
from photo_wall.domain.photos import Batch, Photo, is_deleted, with_comment
from photo_wall.errors import (
    BatchAlreadyExistsError,
    ReferentialError,
    StorageError,
    SubscriberClosedError,
)
from photo_wall.services.broadcast import BroadcastHub
from photo_wall.services.export import ExportService
from photo_wall.services.photos import PhotoRepository, PhotoService
from photo_wall.services.thumbnails import ThumbnailGenerator
from photo_wall.services.uploads import ImageStore, UploadService


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory batch and photo repository for tests."""

    batches: dict[str, Batch] = field(default_factory=dict)
    photos: dict[str, Photo] = field(default_factory=dict)
    fail: bool = False

    def _check(self) -> None:
        if self.fail:
            raise StorageError("Store unavailable")

    def create_batch(self, batch: Batch) -> None:
        self._check()
        if batch.id in self.batches:
            raise BatchAlreadyExistsError(f"Batch {batch.id} already exists")
        self.batches[batch.id] = batch

    def get_batch(self, batch_id: str) -> Batch | None:
        self._check()
        return self.batches.get(batch_id)

    def add_photo(self, photo: Photo) -> None:
        self._check()
        if photo.batch_id not in self.batches:
            raise ReferentialError(f"Batch {photo.batch_id} does not exist")
        self.photos[photo.id] = photo

    def get_photo(self, photo_id: str) -> Photo | None:
        self._check()
        return self.photos.get(photo_id)

    def _visible(self, include_deleted: bool) -> list[Photo]:
        return [
            photo
            for photo in self.photos.values()
            if include_deleted or not is_deleted(photo)
        ]

    def get_recent_photos(
        self, limit: int, include_deleted: bool = False
    ) -> list[Photo]:
        self._check()
        photos = sorted(
            self._visible(include_deleted),
            key=lambda photo: photo.uploaded_at,
            reverse=True,
        )
        return photos[:limit]

    def get_total_photo_count(self, include_deleted: bool = False) -> int:
        self._check()
        return len(self._visible(include_deleted))

    def get_batch_photos(
        self, batch_id: str, include_deleted: bool = False
    ) -> list[Photo]:
        self._check()
        photos = [
            photo
            for photo in self._visible(include_deleted)
            if photo.batch_id == batch_id
        ]
        return sorted(photos, key=lambda photo: photo.order)

    def update_photo_comment(self, photo_id: str, comment: str | None) -> None:
        self._check()
        self.photos[photo_id] = with_comment(self.photos[photo_id], comment)

    def get_all_batches(self) -> list[Batch]:
        self._check()
        return sorted(
            self.batches.values(), key=lambda batch: batch.timestamp, reverse=True
        )


@dataclass
class FakeImageStore(ImageStore):
    """Image store that records writes instead of uploading."""

    objects: dict[str, tuple[bytes, str]] = field(default_factory=dict)
    fail: bool = False

    async def put_original(self, key: str, content: bytes, content_type: str) -> str:
        if self.fail:
            raise RuntimeError("bucket unavailable")
        self.objects[key] = (content, content_type)
        return self.public_url(key)

    async def put_thumbnail(
        self, original_key: str, thumbnail_key: str, content: bytes, content_type: str
    ) -> str:
        if self.fail:
            raise RuntimeError("bucket unavailable")
        self.objects[thumbnail_key] = (content, content_type)
        return self.public_url(thumbnail_key)

    def public_url(self, key: str) -> str:
        return f"https://cdn.example.com/{key}"


@dataclass(eq=False)
class RecordingSink:
    """Event sink that keeps every frame it receives."""

    frames: list[str] = field(default_factory=list)
    fail: bool = False
    closed: bool = False

    async def send(self, frame: str) -> None:
        if self.fail or self.closed:
            raise SubscriberClosedError("connection reset")
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True


def make_photo(  # noqa: PLR0913
    photo_id: str,
    batch_id: str = "B1",
    uploaded_at: int = 1_700_000_000_000,
    comment: str | None = None,
    uploader_name: str = "Alice",
    original_filename: str | None = None,
) -> Photo:
    return Photo(
        id=photo_id,
        batch_id=batch_id,
        original_url=f"https://cdn.example.com/photos/{batch_id}/{photo_id}.jpg",
        thumbnail_url=f"https://cdn.example.com/thumbnails/{batch_id}/{photo_id}.jpg",
        uploader_name=uploader_name,
        comment=comment,
        uploaded_at=uploaded_at,
        order=uploaded_at,
        original_filename=original_filename,
    )


def make_batch(
    batch_id: str = "B1",
    uploader_name: str = "Alice",
    comment: str | None = None,
    timestamp: int = 1_700_000_000_000,
) -> Batch:
    return Batch(
        id=batch_id, uploader_name=uploader_name, comment=comment, timestamp=timestamp
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        environment="test",
    )


@pytest.fixture
def repository() -> InMemoryPhotoRepository:
    return InMemoryPhotoRepository()


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def photo_service(repository: InMemoryPhotoRepository) -> PhotoService:
    return PhotoService(repository)


@pytest.fixture
def hub(photo_service: PhotoService) -> BroadcastHub:
    return BroadcastHub(count_provider=photo_service.total_count)


@pytest.fixture
def upload_service(
    photo_service: PhotoService, image_store: FakeImageStore, hub: BroadcastHub
) -> UploadService:
    return UploadService(
        photo_service=photo_service,
        image_store=image_store,
        hub=hub,
        thumbnails=ThumbnailGenerator(enabled=False),
    )


@pytest.fixture
def container(
    settings: Settings,
    photo_service: PhotoService,
    upload_service: UploadService,
    hub: BroadcastHub,
) -> AppContainer:
    async def close_resources() -> None:
        hub.close()

    return AppContainer(
        settings=settings,
        photo_service=photo_service,
        upload_service=upload_service,
        export_service=ExportService(photo_service),
        hub=hub,
        close_resources=close_resources,
    )
