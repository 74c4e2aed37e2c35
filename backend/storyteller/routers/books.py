"""Book catalog and ingestion endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from storyteller.errors import (
    BookNotFound,
    FolderNotFound,
    InvalidAction,
    InvalidDocument,
    StorageError,
)
from storyteller.services.catalog import CatalogService, get_catalog_service
from storyteller.services.ingestion import IngestionService, get_ingestion_service

logger = logging.getLogger(__name__)

router = APIRouter()


class ActionRequest(BaseModel):
    action: str = ""  # "download" or "tts"


class RenameRequest(BaseModel):
    title: str


class MoveRequest(BaseModel):
    folder: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: List[int]


@router.get("")
async def list_books(catalog: CatalogService = Depends(get_catalog_service)):
    """All books, newest first."""
    books = await catalog.list_books()
    return [b.to_summary() for b in books]


@router.post("", status_code=201)
async def upload_book(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    folder: Optional[str] = Form(None),
    ingestion: IngestionService = Depends(get_ingestion_service)
):
    """Upload a PDF; the first pages are extracted before the book is returned."""
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    try:
        book = await ingestion.ingest(data, file.filename, title=title, folder=folder)
    except InvalidDocument as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Upload of {file.filename} failed")
        raise HTTPException(status_code=500, detail="Upload failed")
    return book.to_detail()


@router.get("/stats")
async def library_stats(catalog: CatalogService = Depends(get_catalog_service)):
    """Totals across the whole library."""
    return await catalog.get_stats()


@router.get("/folder/{folder}")
async def list_books_in_folder(folder: str, catalog: CatalogService = Depends(get_catalog_service)):
    books = await catalog.list_books(folder=folder)
    return [b.to_summary() for b in books]


@router.post("/bulk-delete")
async def bulk_delete_books(data: BulkDeleteRequest, catalog: CatalogService = Depends(get_catalog_service)):
    deleted = await catalog.bulk_delete(data.ids)
    return {"success": True, "deleted": deleted}


@router.get("/{book_id}")
async def get_book(book_id: int, catalog: CatalogService = Depends(get_catalog_service)):
    try:
        book = await catalog.get_book(book_id)
    except BookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return book.to_detail()


@router.get("/{book_id}/load-pages")
async def load_pages(book_id: int, ingestion: IngestionService = Depends(get_ingestion_service)):
    """Extract the next window of pages and append them to the book."""
    try:
        return await ingestion.advance(book_id)
    except BookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        logger.error(f"Could not fetch stored PDF for book {book_id}: {e}")
        raise HTTPException(status_code=502, detail="Stored PDF could not be retrieved")


@router.patch("/{book_id}/actions")
async def record_action(
    book_id: int,
    data: ActionRequest,
    catalog: CatalogService = Depends(get_catalog_service)
):
    try:
        book = await catalog.record_action(book_id, data.action)
    except InvalidAction as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return book.to_summary()


@router.patch("/{book_id}/rename")
async def rename_book(
    book_id: int,
    data: RenameRequest,
    catalog: CatalogService = Depends(get_catalog_service)
):
    if not data.title.strip():
        raise HTTPException(status_code=400, detail="Title must not be empty")
    try:
        book = await catalog.rename_book(book_id, data.title)
    except BookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return book.to_summary()


@router.patch("/{book_id}/move")
async def move_book(
    book_id: int,
    data: MoveRequest,
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Move a book into a folder; "All" takes it out of any folder."""
    try:
        book = await catalog.move_book(book_id, data.folder)
    except (BookNotFound, FolderNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return book.to_summary()


@router.delete("/{book_id}")
async def delete_book(book_id: int, catalog: CatalogService = Depends(get_catalog_service)):
    """Delete the record. Stored cover and PDF objects are left in place."""
    try:
        await catalog.delete_book(book_id)
    except BookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}
