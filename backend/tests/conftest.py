"""
Shared fixtures for the Storyteller backend tests.

The PDF renderer, OCR service and object store are replaced with in-memory
fakes; every test gets its own SQLite database under tmp_path.
"""

import asyncio
import re
from pathlib import Path

import httpx
import pytest
from fastapi import Depends
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storyteller.database import build_engine, create_tables, get_db
from storyteller.errors import InvalidDocument, OcrError, RenderError, StorageError
from storyteller.main import app
from storyteller.services.ingestion import IngestionService, get_ingestion_service
from storyteller.services.locks import BookLocks

PLACEHOLDER_COVER = "https://placeholder.test/cover.png"


def fake_pdf(pages: int) -> bytes:
    """Bytes the fake renderer understands as a PDF with ``pages`` pages."""
    return f"%PDF-FAKE pages={pages}".encode()


class FakeRenderer:
    def __init__(self):
        self.fail_pages = set()
        self.rendered = []

    async def page_count(self, pdf_path: Path) -> int:
        data = Path(pdf_path).read_bytes()
        match = re.match(rb"%PDF-FAKE pages=(\d+)", data)
        if not match:
            raise InvalidDocument("Not a readable PDF")
        return int(match.group(1))

    async def render_page(self, pdf_path: Path, page: int) -> Image.Image:
        await asyncio.sleep(0)
        if not Path(pdf_path).exists():
            raise RenderError(f"{pdf_path} is gone")
        if page in self.fail_pages:
            raise RenderError(f"page {page} broken")
        self.rendered.append(page)
        img = Image.new("L", (56, 56), color=255)
        img.info["page"] = page
        return img


class FakeOcr:
    def __init__(self):
        self.fail_pages = set()

    async def recognize(self, img: Image.Image) -> str:
        await asyncio.sleep(0)
        page = img.info["page"]
        if page in self.fail_pages:
            raise OcrError(f"page {page} unreadable")
        return f"page{page} alpha beta"


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.fail_cover = False
        self.cover_error = None
        self.fail_pdf = False
        self.fail_download = False
        self.downloads = 0

    async def upload_cover(self, png_bytes: bytes, key: str) -> str:
        if self.fail_cover:
            raise StorageError("cover upload refused")
        if self.cover_error is not None:
            raise self.cover_error
        url = f"https://store.test/covers/{key}.png"
        self.objects[url] = png_bytes
        return url

    async def upload_pdf(self, pdf_bytes: bytes, key: str) -> str:
        await asyncio.sleep(0)
        if self.fail_pdf:
            raise StorageError("pdf upload refused")
        url = f"https://store.test/books/{key}.pdf"
        self.objects[url] = pdf_bytes
        return url

    async def download(self, url: str) -> bytes:
        await asyncio.sleep(0.01)
        self.downloads += 1
        if self.fail_download or url not in self.objects:
            raise StorageError(f"{url} unavailable")
        return self.objects[url]


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def ocr():
    return FakeOcr()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def work_dir(tmp_path):
    return tmp_path / "work"


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_service(renderer, ocr, storage, work_dir):
    """Build an IngestionService on a given session, optionally with its own lock registry."""
    shared_locks = BookLocks()

    def _make(db: AsyncSession, locks: BookLocks = None) -> IngestionService:
        return IngestionService(
            db,
            renderer,
            ocr,
            storage,
            locks if locks is not None else shared_locks,
            temp_root=work_dir,
            preview_pages=5,
            batch_size=5,
            placeholder_cover_url=PLACEHOLDER_COVER,
        )

    return _make


@pytest.fixture
async def client(session_factory, make_service):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_ingestion(db: AsyncSession = Depends(get_db)):
        return make_service(db)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ingestion_service] = override_ingestion
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def upload(client):
    """POST a fake PDF and return the response."""
    async def _upload(pages: int = 3, filename: str = "My Book.pdf", **form):
        return await client.post(
            "/api/books",
            files={"file": (filename, fake_pdf(pages), "application/pdf")},
            data=form,
        )
    return _upload
