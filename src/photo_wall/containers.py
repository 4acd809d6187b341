"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from photo_wall.adapters.cloudflare_image_store import CloudflareImagesStore
from photo_wall.adapters.supabase_image_store import SupabaseImageStore
from photo_wall.adapters.supabase_photo_repository import SupabasePhotoRepository
from photo_wall.config import Settings
from photo_wall.services.broadcast import BroadcastHub
from photo_wall.services.export import ExportService
from photo_wall.services.photos import PhotoService
from photo_wall.services.thumbnails import ThumbnailGenerator
from photo_wall.services.uploads import ImageStore, UploadService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    photo_service: PhotoService
    upload_service: UploadService
    export_service: ExportService
    hub: BroadcastHub
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    photo_service = PhotoService(SupabasePhotoRepository(supabase_client))
    hub = BroadcastHub(count_provider=photo_service.total_count)

    cloudflare_store: CloudflareImagesStore | None = None
    image_store: ImageStore
    if resolved_settings.storage_backend == "cloudflare-images":
        if not (
            resolved_settings.cloudflare_account_id
            and resolved_settings.cloudflare_images_api_token
            and resolved_settings.cloudflare_images_hash
        ):
            raise ValueError("Cloudflare Images credentials not configured")
        cloudflare_store = CloudflareImagesStore.create(
            account_id=resolved_settings.cloudflare_account_id,
            api_token=resolved_settings.cloudflare_images_api_token,
            account_hash=resolved_settings.cloudflare_images_hash,
        )
        image_store = cloudflare_store
        # Cloudflare resizes on delivery.
        thumbnails = ThumbnailGenerator(enabled=False)
    else:
        image_store = SupabaseImageStore(
            client=supabase_client,
            bucket=resolved_settings.storage_bucket,
            public_base_url=resolved_settings.storage_public_url,
        )
        thumbnails = ThumbnailGenerator(enabled=resolved_settings.generate_thumbnails)

    upload_service = UploadService(
        photo_service=photo_service,
        image_store=image_store,
        hub=hub,
        thumbnails=thumbnails,
        max_file_size=resolved_settings.max_file_size,
    )

    async def close_resources() -> None:
        hub.close()
        if cloudflare_store is not None:
            await cloudflare_store.close()

    return AppContainer(
        settings=resolved_settings,
        photo_service=photo_service,
        upload_service=upload_service,
        export_service=ExportService(photo_service),
        hub=hub,
        close_resources=close_resources,
    )
