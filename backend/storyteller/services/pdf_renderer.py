"""PDF rasterization through Poppler (pdf2image)."""

import asyncio
import io
import logging
from pathlib import Path

from PIL import Image
from pdf2image import convert_from_path, pdfinfo_from_path
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError

from storyteller.errors import InvalidDocument, RenderError

logger = logging.getLogger(__name__)

DEFAULT_DPI = 150


def image_to_png(img: Image.Image) -> bytes:
    """Encode a PIL image as PNG bytes."""
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    output = io.BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


class PdfRenderer:
    """Reads page counts and renders single pages of a PDF on disk.

    Poppler runs as a subprocess, so every call is pushed to the default
    executor to keep the event loop free.
    """

    def __init__(self, dpi: int = DEFAULT_DPI):
        self.dpi = dpi

    async def page_count(self, pdf_path: Path) -> int:
        loop = asyncio.get_running_loop()
        try:
            info = await loop.run_in_executor(None, pdfinfo_from_path, str(pdf_path))
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise InvalidDocument(f"Not a readable PDF: {e}") from e
        except PDFInfoNotInstalledError as e:
            raise RenderError(f"Poppler is not installed: {e}") from e
        pages = int(info.get("Pages", 0))
        if pages < 1:
            raise InvalidDocument("PDF has no pages")
        return pages

    def _convert_page(self, pdf_path: str, page: int) -> Image.Image:
        images = convert_from_path(pdf_path, dpi=self.dpi, first_page=page, last_page=page)
        if not images:
            raise RenderError(f"Page {page} produced no image")
        return images[0]

    async def render_page(self, pdf_path: Path, page: int) -> Image.Image:
        """Render one 1-based page to an image."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._convert_page, str(pdf_path), page)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Rendering page {page} failed: {e}") from e


def get_pdf_renderer() -> PdfRenderer:
    """Dependency to get the PDF renderer."""
    return PdfRenderer()
