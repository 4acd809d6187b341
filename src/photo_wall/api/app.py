"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from photo_wall.api.models import BatchCreateRequest, PhotoDeleteRequest
from photo_wall.app_logging import configure_logging
from photo_wall.containers import AppContainer
from photo_wall.domain.photos import (
    Photo,
    is_deleted,
    serialize_batch,
    serialize_photo,
)
from photo_wall.errors import PhotoWallError, StorageError
from photo_wall.services.broadcast import (
    LiveSubscription,
    QueueSink,
    encode_event,
    error_event,
    photo_event,
    total_count_event,
)
from photo_wall.services.uploads import IncomingFile

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(PhotoWallError)
    async def photo_wall_error_handler(
        request: Request, exc: PhotoWallError
    ) -> JSONResponse:
        state_container: AppContainer = request.app.state.container
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": _format_error(state_container, exc),
                "success": False,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = [
            str(error["loc"][-1]) for error in exc.errors() if error.get("loc")
        ]
        message = "Invalid or missing fields"
        if fields:
            message = f"{message}: {', '.join(fields)}"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message, "success": False},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "success": False},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/batch")
    async def create_batch(body: BatchCreateRequest, request: Request) -> dict:
        """Create an upload batch, returning the stored one if it exists."""
        state_container: AppContainer = request.app.state.container
        batch, existing = state_container.photo_service.create_batch(
            body.batch_id, body.uploader_name, body.comment
        )
        return {
            "success": True,
            "batch": serialize_batch(batch),
            "existing": existing,
        }

    @app.post("/upload")
    async def upload(
        request: Request,
        file: UploadFile | None = File(default=None),
        batch_id: str | None = Form(default=None, alias="batchId"),
        file_id: str | None = Form(default=None, alias="fileId"),
    ) -> dict:
        """Upload one photo into a batch."""
        state_container: AppContainer = request.app.state.container
        incoming = None
        if file is not None:
            incoming = IncomingFile(
                filename=file.filename or "",
                content_type=file.content_type or "",
                content=await file.read(),
            )
        photo = await state_container.upload_service.handle_upload(
            incoming, batch_id, file_id or None
        )
        return {"success": True, "photo": serialize_photo(photo)}

    @app.post("/photos/delete")
    async def toggle_delete(body: PhotoDeleteRequest, request: Request) -> dict:
        """Soft-delete or restore a photo."""
        state_container: AppContainer = request.app.state.container
        state_container.photo_service.set_photo_deleted(body.photo_id, body.deleted)
        return {"success": True, "photoId": body.photo_id, "deleted": body.deleted}

    @app.get("/photos", response_model=None)
    async def list_photos(
        request: Request,
        limit: int = Query(default=100, ge=1, le=10000),
        include_deleted: bool = Query(default=False, alias="includeDeleted"),
    ) -> dict | JSONResponse:
        """List recent photos with the total count."""
        state_container: AppContainer = request.app.state.container
        service = state_container.photo_service
        try:
            photos = service.list_recent(limit, include_deleted)
            total_count = service.total_count()
        except StorageError:
            logger.exception("Failed to fetch photos")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Failed to fetch photos",
                    "photos": [],
                    "totalCount": 0,
                    "success": False,
                },
            )
        return {
            "photos": [_photo_listing(photo) for photo in photos],
            "totalCount": total_count,
            "success": True,
        }

    @app.get("/photos/export")
    async def export_photos(
        request: Request, batch_id: str | None = Query(default=None, alias="batchId")
    ) -> dict:
        """Export metadata of non-deleted photos for download."""
        state_container: AppContainer = request.app.state.container
        if batch_id:
            photos = state_container.export_service.export_batch(batch_id)
            return {"success": True, "photos": photos}
        batches = state_container.export_service.export_all()
        return {"success": True, "batches": batches}

    @app.get("/photos/stream")
    async def photo_stream(request: Request) -> StreamingResponse:
        """Live feed of uploads as server-sent events."""
        state_container: AppContainer = request.app.state.container
        return StreamingResponse(
            stream_events(state_container),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    return app


async def stream_events(
    container: AppContainer, sink: QueueSink | None = None
) -> AsyncIterator[str]:
    """Yield the frames of one live preview connection.

    The subscriber is registered before the snapshot is read so that uploads
    arriving meanwhile are queued rather than missed.
    """
    sink = sink or QueueSink()
    subscription = LiveSubscription(
        container.hub, sink, container.settings.heartbeat_interval_seconds
    )
    subscription.open()
    try:
        service = container.photo_service
        try:
            total_count = service.total_count()
            recent = service.list_recent(container.settings.stream_snapshot_limit)
        except StorageError:
            logger.exception("Failed to load live preview snapshot")
            yield encode_event(error_event("Failed to load recent photos"))
        else:
            yield encode_event(total_count_event(total_count))
            for photo in reversed(recent):
                yield encode_event(photo_event(photo))
        async for frame in sink.frames():
            yield frame
    finally:
        await subscription.close()


def _photo_listing(photo: Photo) -> dict[str, object]:
    """Serialize a photo for listings, exposing its deletion state."""
    return {**serialize_photo(photo), "deleted": is_deleted(photo)}


def _format_error(state_container: AppContainer, exc: PhotoWallError) -> str:
    """Return a user-facing error message with local debug info."""
    message = exc.message
    cause = exc.__cause__
    if state_container.settings.environment == "local" and cause is not None:
        detail = f"{type(cause).__name__}: {cause}".strip()
        return f"{message} (debug: {detail})"
    return message
