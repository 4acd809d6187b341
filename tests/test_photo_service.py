"""Tests for the batch and photo lifecycle service."""

import pytest

from photo_wall.domain.photos import DELETED_FLAG, is_deleted
from photo_wall.errors import (
    BatchAlreadyExistsError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from photo_wall.services.photos import PhotoService
from tests.conftest import InMemoryPhotoRepository, make_batch, make_photo


def test_create_batch_is_idempotent(
    photo_service: PhotoService, repository: InMemoryPhotoRepository
) -> None:
    first, first_existing = photo_service.create_batch("B1", "Alice", "Hi")
    second, second_existing = photo_service.create_batch("B1", "Bob")

    assert first_existing is False
    assert second_existing is True
    assert second == first
    assert second.uploader_name == "Alice"
    assert len(repository.batches) == 1


def test_create_batch_requires_id_and_name(photo_service: PhotoService) -> None:
    with pytest.raises(ValidationError):
        photo_service.create_batch("", "Alice")
    with pytest.raises(ValidationError):
        photo_service.create_batch("B1", "   ")


def test_create_batch_treats_lost_race_as_existing() -> None:
    winner = make_batch("B1", uploader_name="Winner")

    class RacingRepository(InMemoryPhotoRepository):
        lookups: int = 0

        def get_batch(self, batch_id):  # type: ignore[no-untyped-def]
            self.lookups += 1
            if self.lookups == 1:
                # Another request inserts between our lookup and our insert.
                self.batches[batch_id] = winner
                return None
            return super().get_batch(batch_id)

    service = PhotoService(RacingRepository())

    batch, existing = service.create_batch("B1", "Loser")

    assert existing is True
    assert batch == winner


def test_create_batch_reraises_when_winner_is_missing() -> None:
    class BrokenRepository(InMemoryPhotoRepository):
        def create_batch(self, batch):  # type: ignore[no-untyped-def]
            raise BatchAlreadyExistsError("duplicate")

    service = PhotoService(BrokenRepository())

    with pytest.raises(BatchAlreadyExistsError):
        service.create_batch("B1", "Alice")


def test_set_photo_deleted_toggles_and_keeps_comment(
    photo_service: PhotoService, repository: InMemoryPhotoRepository
) -> None:
    repository.batches["B1"] = make_batch()
    repository.photos["p1"] = make_photo("p1", comment="Cheers")

    deleted = photo_service.set_photo_deleted("p1", True)
    assert is_deleted(deleted)
    assert repository.photos["p1"].comment == f"{DELETED_FLAG}Cheers"

    restored = photo_service.set_photo_deleted("p1", False)
    assert not is_deleted(restored)
    assert repository.photos["p1"].comment == "Cheers"


def test_restoring_photo_without_comment_stores_none(
    photo_service: PhotoService, repository: InMemoryPhotoRepository
) -> None:
    repository.photos["p1"] = make_photo("p1", comment=None)

    photo_service.set_photo_deleted("p1", True)
    photo_service.set_photo_deleted("p1", False)

    assert repository.photos["p1"].comment is None


def test_set_photo_deleted_unknown_photo(photo_service: PhotoService) -> None:
    with pytest.raises(NotFoundError):
        photo_service.set_photo_deleted("missing", True)


def test_recent_photos_exclude_deleted(
    photo_service: PhotoService, repository: InMemoryPhotoRepository
) -> None:
    for index in range(6):
        repository.photos[f"p{index}"] = make_photo(
            f"p{index}", uploaded_at=1_000 + index
        )
    photo_service.set_photo_deleted("p2", True)
    photo_service.set_photo_deleted("p5", True)

    all_ids = {photo.id for photo in photo_service.list_recent(10, True)}
    for limit in (1, 3, 6, 10):
        visible = photo_service.list_recent(limit)
        everything = photo_service.list_recent(limit, include_deleted=True)

        assert {photo.id for photo in visible} <= all_ids
        assert not any(is_deleted(photo) for photo in visible)
        assert len(everything) == min(limit, 6)

    newest_first = [photo.id for photo in photo_service.list_recent(10)]
    assert newest_first == ["p4", "p3", "p1", "p0"]
    assert photo_service.total_count() == 4
    assert photo_service.total_count(include_deleted=True) == 6


def test_batch_photos_are_ordered(
    photo_service: PhotoService, repository: InMemoryPhotoRepository
) -> None:
    repository.batches["B1"] = make_batch()
    for photo_id, uploaded_at in (("c", 30), ("a", 10), ("b", 20)):
        repository.photos[photo_id] = make_photo(photo_id, uploaded_at=uploaded_at)
    repository.photos["other"] = make_photo("other", batch_id="B2", uploaded_at=5)

    orders = [photo.order for photo in photo_service.batch_photos("B1")]

    assert orders == sorted(orders)
    assert [photo.id for photo in photo_service.batch_photos("B1")] == ["a", "b", "c"]


def test_storage_errors_propagate(
    photo_service: PhotoService, repository: InMemoryPhotoRepository
) -> None:
    repository.fail = True

    with pytest.raises(StorageError):
        photo_service.total_count()
    with pytest.raises(StorageError):
        photo_service.create_batch("B1", "Alice")
