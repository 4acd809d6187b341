"""Cloudflare Images implementation of the image store."""

from dataclasses import dataclass

import httpx

from photo_wall.services.uploads import ImageStore

THUMBNAIL_VARIANT = "thumbnail"
PUBLIC_VARIANT = "public"


@dataclass
class CloudflareImagesStore(ImageStore):
    """Uploads each photo once; the thumbnail is a delivery variant."""

    account_id: str
    api_token: str
    account_hash: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, account_id: str, api_token: str, account_hash: str
    ) -> "CloudflareImagesStore":
        """Create a store with a managed httpx session."""
        return cls(
            account_id=account_id,
            api_token=api_token,
            account_hash=account_hash,
            http_client=httpx.AsyncClient(),
        )

    async def put_original(self, key: str, content: bytes, content_type: str) -> str:
        """Upload the image with the storage key as its custom id."""
        url = (
            f"https://api.cloudflare.com/client/v4/accounts/{self.account_id}"
            "/images/v1"
        )
        filename = key.rsplit("/", maxsplit=1)[-1]
        response = await self.http_client.post(
            url,
            headers={"Authorization": f"Bearer {self.api_token}"},
            data={"id": key},
            files={"file": (filename, content, content_type)},
            timeout=60,
        )
        response.raise_for_status()
        payload = response.json()
        if not payload.get("success"):
            raise RuntimeError(f"Cloudflare Images API error: {payload.get('errors')}")
        image_id = payload["result"]["id"]
        return self.variant_url(image_id, PUBLIC_VARIANT)

    async def put_thumbnail(
        self, original_key: str, thumbnail_key: str, content: bytes, content_type: str
    ) -> str:
        """Return the thumbnail variant of the already uploaded original."""
        return self.variant_url(original_key, THUMBNAIL_VARIANT)

    def public_url(self, key: str) -> str:
        return self.variant_url(key, PUBLIC_VARIANT)

    def variant_url(self, image_id: str, variant: str) -> str:
        """Return the delivery URL of an image variant."""
        return f"https://imagedelivery.net/{self.account_hash}/{image_id}/{variant}"

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
