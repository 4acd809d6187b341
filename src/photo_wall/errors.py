"""Error taxonomy for the photo wall."""

from fastapi import status


class PhotoWallError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PhotoWallError):
    """Bad or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(PhotoWallError):
    """Unknown batch or photo."""

    status_code = status.HTTP_404_NOT_FOUND


class StorageError(PhotoWallError):
    """Relational store or object storage failure."""


class ReferentialError(StorageError):
    """A photo references a batch that does not exist."""


class BatchAlreadyExistsError(StorageError):
    """A batch with the same id was inserted first."""

    status_code = status.HTTP_409_CONFLICT


class UploadError(PhotoWallError):
    """An upload could not be stored or persisted."""


class SubscriberClosedError(Exception):
    """Raised when sending to a live subscriber that is gone or saturated."""
