"""Application configuration."""

import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    storage_backend: Literal["supabase", "cloudflare-images"] = "supabase"
    storage_bucket: str = "photos"
    storage_public_url: str | None = None
    cloudflare_account_id: str | None = None
    cloudflare_images_api_token: str | None = None
    cloudflare_images_hash: str | None = None
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    generate_thumbnails: bool = True
    heartbeat_interval_seconds: float = 30.0
    stream_snapshot_limit: int = 10
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
