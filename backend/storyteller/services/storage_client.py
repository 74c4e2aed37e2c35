"""Remote object storage client (Cloudinary-style signed uploads)."""

import hashlib
import logging
import time
from typing import Optional, Dict

import httpx

from storyteller.config import StorageConfig, settings
from storyteller.errors import StorageError

logger = logging.getLogger(__name__)


class StorageClient:
    """Uploads covers and PDFs and hands back their permanent URLs."""

    def __init__(
        self,
        config: StorageConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 120.0,
    ):
        self.config = config
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport)

    def sign(self, params: Dict[str, str]) -> str:
        """SHA-1 signature over the sorted upload parameters plus the API secret."""
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
        return hashlib.sha1((to_sign + self.config.api_secret).encode("utf-8")).hexdigest()

    async def upload(
        self,
        data: bytes,
        public_id: str,
        filename: str,
        resource_type: str = "image",
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload bytes and return the object's secure URL."""
        if not self.config.cloud_name:
            raise StorageError("Storage credentials not configured")

        params = {
            "folder": self.config.folder,
            "public_id": public_id,
            "timestamp": str(int(time.time())),
        }
        form = {**params, "api_key": self.config.api_key, "signature": self.sign(params)}
        url = f"{self.config.api_base_url.rstrip('/')}/{self.config.cloud_name}/{resource_type}/upload"

        try:
            async with self._client() as client:
                response = await client.post(url, data=form, files={"file": (filename, data, content_type)})
                response.raise_for_status()
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StorageError(f"Upload of {filename} failed: {e}") from e

        if not isinstance(result, dict):
            raise StorageError(f"Upload of {filename} returned an unexpected response")
        secure_url = result.get("secure_url") or result.get("url")
        if not secure_url:
            raise StorageError(f"Upload of {filename} returned no URL")
        logger.info(f"Uploaded {filename} ({len(data)} bytes) to {secure_url}")
        return secure_url

    async def upload_cover(self, png_bytes: bytes, key: str) -> str:
        return await self.upload(png_bytes, f"covers/{key}", f"{key}.png", "image", "image/png")

    async def upload_pdf(self, pdf_bytes: bytes, key: str) -> str:
        return await self.upload(pdf_bytes, f"books/{key}.pdf", f"{key}.pdf", "raw", "application/pdf")

    async def download(self, url: str) -> bytes:
        """Fetch a stored object back."""
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            raise StorageError(f"Download of {url} failed: {e}") from e


def get_storage_client() -> StorageClient:
    """Dependency to get the storage client from the configured credentials."""
    return StorageClient(settings.storage_config())
