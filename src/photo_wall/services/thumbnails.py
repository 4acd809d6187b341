"""Thumbnail generation with Pillow."""

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedImage:
    """Image bytes ready to store."""

    content: bytes
    content_type: str
    extension: str


@dataclass
class ThumbnailGenerator:
    """Downsizes images to fit inside a bounding box as progressive JPEG."""

    max_width: int = 800
    max_height: int = 800
    quality: int = 80
    enabled: bool = True

    def render(
        self, content: bytes, content_type: str, extension: str
    ) -> RenderedImage:
        """Return a thumbnail, or the original bytes when it cannot be decoded."""
        original = RenderedImage(content, content_type, extension)
        if not self.enabled:
            return original
        try:
            with Image.open(io.BytesIO(content)) as image:
                image = ImageOps.exif_transpose(image)
                image.thumbnail(
                    (self.max_width, self.max_height), Image.Resampling.LANCZOS
                )
                if image.mode not in ("RGB", "L"):
                    image = image.convert("RGB")
                buffer = io.BytesIO()
                image.save(
                    buffer, format="JPEG", quality=self.quality, progressive=True
                )
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
            logger.warning(
                "Could not decode image for thumbnail, storing original",
                extra={"content_type": content_type},
            )
            return original
        return RenderedImage(buffer.getvalue(), "image/jpeg", "jpg")
