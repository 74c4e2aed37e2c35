"""Upload ingestion and lazy page-by-page text extraction."""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional, Dict, Any

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storyteller.config import settings
from storyteller.database import get_db
from storyteller.errors import BookNotFound, OcrError, RenderError
from storyteller.models import Book, STATUS_COMPLETED, STATUS_PROCESSING, count_words
from storyteller.services.catalog import resolve_folder
from storyteller.services.locks import BookLocks, get_book_locks
from storyteller.services.ocr_client import OcrClient, get_ocr_client
from storyteller.services.pdf_renderer import PdfRenderer, get_pdf_renderer, image_to_png
from storyteller.services.storage_client import StorageClient, get_storage_client
from storyteller.services.workspace import job_workspace

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


def join_text(existing: str, added: str) -> str:
    if not existing:
        return added
    if not added:
        return existing
    return existing + PAGE_SEPARATOR + added


def default_title(filename: str) -> str:
    """File name without its extension."""
    stem = Path(filename or "").stem.strip()
    return stem or "Untitled"


class IngestionService:
    """Turns uploaded PDFs into books and extends their text on demand."""

    def __init__(
        self,
        db: AsyncSession,
        renderer: PdfRenderer,
        ocr: OcrClient,
        storage: StorageClient,
        locks: BookLocks,
        temp_root: Path = Path(settings.temp_dir),
        preview_pages: int = settings.preview_pages,
        batch_size: int = settings.page_batch_size,
        placeholder_cover_url: str = settings.placeholder_cover_url,
    ):
        self.db = db
        self.renderer = renderer
        self.ocr = ocr
        self.storage = storage
        self.locks = locks
        self.temp_root = Path(temp_root)
        self.preview_pages = preview_pages
        self.batch_size = batch_size
        self.placeholder_cover_url = placeholder_cover_url

    async def _extract_pages(self, pdf_path: Path, first: int, last: int) -> str:
        """Render and OCR pages ``first``..``last`` (inclusive, 1-based) in order.

        A page that fails to render or recognize contributes no text.
        """
        parts = []
        for page in range(first, last + 1):
            try:
                image = await self.renderer.render_page(pdf_path, page)
                text = await self.ocr.recognize(image)
            except (RenderError, OcrError) as e:
                logger.warning(f"Page {page} of {pdf_path.name} yielded no text: {e}")
                continue
            if text:
                parts.append(text)
        return PAGE_SEPARATOR.join(parts)

    async def _make_cover(self, pdf_path: Path, key: str) -> str:
        try:
            image = await self.renderer.render_page(pdf_path, 1)
            return await self.storage.upload_cover(image_to_png(image), key)
        except Exception as e:
            logger.warning(f"Cover generation failed for {pdf_path.name}, using placeholder: {e}")
            return self.placeholder_cover_url

    async def ingest(
        self,
        data: bytes,
        filename: str,
        title: Optional[str] = None,
        folder: Optional[str] = None,
    ) -> Book:
        """Create a book from an uploaded PDF with its first pages already read."""
        start_time = time.time()
        key = f"{int(start_time * 1000)}-{uuid.uuid4().hex[:12]}"

        with job_workspace(self.temp_root) as workdir:
            pdf_path = workdir / f"{key}.pdf"
            await asyncio.to_thread(pdf_path.write_bytes, data)

            total_pages = await self.renderer.page_count(pdf_path)
            logger.info(f"Ingesting {filename}: {total_pages} pages")

            cover_url, pdf_url = await asyncio.gather(
                self._make_cover(pdf_path, key),
                self.storage.upload_pdf(data, key),
                return_exceptions=True,
            )
            if isinstance(pdf_url, BaseException):
                raise pdf_url
            if isinstance(cover_url, BaseException):
                raise cover_url

            processed = min(self.preview_pages, total_pages)
            content = await self._extract_pages(pdf_path, 1, processed)

        folder_row = await resolve_folder(self.db, folder, create=True)
        book = Book(
            title=(title or "").strip() or default_title(filename),
            cover=cover_url,
            pdf_url=pdf_url,
            folder=folder_row,
            content=content,
            chapters=[],
            words=count_words(content),
            total_pages=total_pages,
            processed_pages=processed,
            status=STATUS_COMPLETED if processed == total_pages else STATUS_PROCESSING,
        )
        self.db.add(book)
        await self.db.commit()
        await self.db.refresh(book)

        logger.info(
            f"Created book {book.id} '{book.title}' ({processed}/{total_pages} pages) "
            f"in {time.time() - start_time:.1f}s"
        )
        return book

    async def _load(self, book_id: int) -> Book:
        result = await self.db.execute(select(Book).where(Book.id == book_id))
        book = result.scalar_one_or_none()
        if not book:
            raise BookNotFound(book_id)
        return book

    @staticmethod
    def _advance_result(book: Book, added_text: str) -> Dict[str, Any]:
        return {
            "_id": book.id,
            "addedText": added_text,
            "processedPages": book.processed_pages,
            "totalPages": book.total_pages,
            "status": book.status,
            "words": book.words,
        }

    async def advance(self, book_id: int) -> Dict[str, Any]:
        """Extract the next window of pages from the stored copy and append it.

        Advances of one book run one at a time, and the write only lands if
        the cursor is still where it was read, so no page range is ever
        appended twice.
        """
        async with self.locks.hold(book_id):
            book = await self._load(book_id)
            observed = book.processed_pages
            if book.status == STATUS_COMPLETED or observed >= book.total_pages:
                return self._advance_result(book, "")

            first = observed + 1
            last = min(observed + self.batch_size, book.total_pages)
            pdf_bytes = await self.storage.download(book.pdf_url)

            with job_workspace(self.temp_root) as workdir:
                pdf_path = workdir / f"book-{book_id}.pdf"
                await asyncio.to_thread(pdf_path.write_bytes, pdf_bytes)
                added = await self._extract_pages(pdf_path, first, last)

            content = join_text(book.content or "", added)
            result = await self.db.execute(
                update(Book)
                .where(Book.id == book_id, Book.processed_pages == observed)
                .values(
                    content=content,
                    words=count_words(content),
                    processed_pages=last,
                    status=STATUS_COMPLETED if last == book.total_pages else STATUS_PROCESSING,
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

            if result.rowcount == 0:
                logger.warning(f"Book {book_id} advanced elsewhere past page {observed}, discarding pages {first}-{last}")
                self.db.expire_all()
                return self._advance_result(await self._load(book_id), "")

            await self.db.refresh(book)
            logger.info(f"Book {book_id}: pages {first}-{last} of {book.total_pages} extracted")
            return self._advance_result(book, added)


async def get_ingestion_service(
    db: AsyncSession = Depends(get_db),
    renderer: PdfRenderer = Depends(get_pdf_renderer),
    ocr: OcrClient = Depends(get_ocr_client),
    storage: StorageClient = Depends(get_storage_client),
    locks: BookLocks = Depends(get_book_locks),
) -> IngestionService:
    """Dependency to get the ingestion service."""
    return IngestionService(db, renderer, ocr, storage, locks)
