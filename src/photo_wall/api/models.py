"""Request models for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class BatchCreateRequest(BaseModel):
    """Body of ``POST /batch``."""

    model_config = ConfigDict(populate_by_name=True)

    batch_id: str = Field(alias="batchId", min_length=1)
    uploader_name: str = Field(alias="uploaderName", min_length=1)
    comment: str | None = None


class PhotoDeleteRequest(BaseModel):
    """Body of ``POST /photos/delete``."""

    model_config = ConfigDict(populate_by_name=True)

    photo_id: str = Field(alias="photoId", min_length=1)
    deleted: StrictBool
