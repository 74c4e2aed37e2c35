"""OCR client for Ollama-compatible vision models."""

import base64
import io
import logging
from typing import Optional, Dict, Any

import httpx
from PIL import Image

from storyteller.config import OcrConfig, settings
from storyteller.errors import OcrError

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "Extract ALL text from this book page image. "
    "Return ONLY the extracted text, preserving paragraphs and reading order. "
    "Do not add commentary. Just raw text."
)


class OcrClient:
    """Turns page images into text through one or more vision model servers."""

    def __init__(
        self,
        config: OcrConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 300.0,
    ):
        urls = [u.rstrip("/") for u in config.urls if u.strip()]
        self.urls = urls or [config.url.rstrip("/")]
        self.current_url_index = 0
        self.model = config.model
        self.max_image_size = config.max_image_size
        self.headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        self.transport = transport
        self.timeout = timeout

    def get_current_url(self) -> str:
        return self.urls[self.current_url_index]

    def rotate_url(self):
        if len(self.urls) > 1:
            self.current_url_index = (self.current_url_index + 1) % len(self.urls)
            logger.info(f"Rotated to next OCR server: {self.get_current_url()}")

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, headers=self.headers, transport=self.transport)

    async def test_connection(self) -> Dict[str, Any]:
        """Check that the server answers and has the model pulled."""
        try:
            async with self._client(30.0) as client:
                response = await client.get(f"{self.get_current_url()}/api/tags")
                response.raise_for_status()
                model_names = [m.get("name", "") for m in response.json().get("models", [])]
                return {
                    "connected": True,
                    "model_available": any(name.startswith(self.model.split(":")[0]) for name in model_names),
                    "available_models": model_names,
                }
        except (httpx.HTTPError, ValueError) as e:
            return {"connected": False, "model_available": False, "error": str(e)}

    def prepare_image(self, img: Image.Image) -> bytes:
        """Convert to PNG bytes, downscaled and aligned for the vision model.

        qwen2.5vl needs both dimensions divisible by its 28px patch size.
        """
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        w, h = img.size
        if max(w, h) > self.max_image_size:
            ratio = self.max_image_size / max(w, h)
            w = int(w * ratio)
            h = int(h * ratio)

        w = max(28, (w // 28) * 28)
        h = max(28, (h // 28) * 28)
        img = img.resize((w, h), Image.LANCZOS)

        output = io.BytesIO()
        img.save(output, format="PNG")
        return output.getvalue()

    async def _ocr_single_image(self, image_bytes: bytes) -> str:
        """Run OCR on prepared image bytes, failing over across configured servers."""
        image_b64 = base64.b64encode(image_bytes).decode("utf-8")
        attempts = len(self.urls)
        last_error: Optional[Exception] = None

        for _ in range(attempts):
            url = self.get_current_url()
            try:
                async with self._client(self.timeout) as client:
                    response = await client.post(
                        f"{url}/api/generate",
                        json={
                            "model": self.model,
                            "prompt": OCR_PROMPT,
                            "images": [image_b64],
                            "stream": False,
                            "options": {"temperature": 0.1, "num_predict": 4096},
                        },
                    )
                if response.status_code != 200:
                    raise OcrError(f"OCR server error {response.status_code}: {response.text[:500]}")
                return (response.json().get("response") or "").strip()
            except (httpx.HTTPError, OcrError, ValueError) as e:
                logger.warning(f"OCR failed at {url}: {e}")
                last_error = e
                self.rotate_url()

        raise OcrError(f"All OCR servers ({attempts}) failed. Last error: {last_error}")

    async def recognize(self, img: Image.Image) -> str:
        """Extract the text of one page image."""
        try:
            prepared = self.prepare_image(img)
        except (OSError, ValueError) as e:
            raise OcrError(f"Image preparation failed: {e}") from e
        return await self._ocr_single_image(prepared)


def get_ocr_client() -> OcrClient:
    """Dependency to get the OCR client from the configured credentials."""
    return OcrClient(settings.ocr_config())
