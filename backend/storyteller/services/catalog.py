"""Catalog service: books, folders, counters and library statistics."""

import logging
from typing import Dict, List, Optional

from fastapi import Depends
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storyteller.database import get_db
from storyteller.errors import BookNotFound, FolderExists, FolderInUse, FolderNotFound, InvalidAction
from storyteller.models import ALL_FOLDER, Book, Folder, STATUS_PROCESSING

logger = logging.getLogger(__name__)

# Action name -> counter column it bumps
ACTION_COUNTERS = {
    "download": Book.downloads,
    "tts": Book.tts_requests,
}


def is_all_folder(name: Optional[str]) -> bool:
    return not name or not name.strip() or name.strip().lower() == ALL_FOLDER.lower()


async def get_folder_by_name(db: AsyncSession, name: str) -> Optional[Folder]:
    result = await db.execute(select(Folder).where(Folder.name == name.strip()))
    return result.scalar_one_or_none()


async def resolve_folder(db: AsyncSession, name: Optional[str], create: bool = False) -> Optional[Folder]:
    """Map a folder name to its row. "All" (or nothing) maps to no folder."""
    if is_all_folder(name):
        return None
    folder = await get_folder_by_name(db, name)
    if folder:
        return folder
    if not create:
        raise FolderNotFound(name)
    try:
        async with db.begin_nested():
            folder = Folder(name=name.strip())
            db.add(folder)
    except IntegrityError:
        # Another upload created the same folder since the lookup
        folder = await get_folder_by_name(db, name)
        if folder is None:
            raise
        return folder
    logger.info(f"Created folder '{folder.name}' on upload")
    return folder


class CatalogService:
    """Read and write access to book and folder records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Books

    async def list_books(self, folder: Optional[str] = None) -> List[Book]:
        """All books, newest first, optionally restricted to one folder."""
        query = select(Book).order_by(Book.created_at.desc(), Book.id.desc())
        if not is_all_folder(folder):
            query = query.join(Folder, Book.folder_id == Folder.id).where(Folder.name == folder.strip())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_book(self, book_id: int) -> Book:
        result = await self.db.execute(select(Book).where(Book.id == book_id))
        book = result.scalar_one_or_none()
        if not book:
            raise BookNotFound(book_id)
        return book

    async def delete_book(self, book_id: int) -> None:
        book = await self.get_book(book_id)
        await self.db.delete(book)
        await self.db.commit()
        logger.info(f"Deleted book {book_id}")

    async def bulk_delete(self, book_ids: List[int]) -> int:
        if not book_ids:
            return 0
        result = await self.db.execute(delete(Book).where(Book.id.in_(book_ids)))
        await self.db.commit()
        logger.info(f"Bulk deleted {result.rowcount} of {len(book_ids)} books")
        return result.rowcount

    async def record_action(self, book_id: int, action: str) -> Book:
        """Bump the download or text-to-speech counter by one."""
        counter = ACTION_COUNTERS.get(action)
        if counter is None:
            raise InvalidAction(action)
        result = await self.db.execute(
            update(Book)
            .where(Book.id == book_id)
            .values({counter.key: counter + 1})
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount == 0:
            raise BookNotFound(book_id)
        self.db.expire_all()
        return await self.get_book(book_id)

    async def rename_book(self, book_id: int, title: str) -> Book:
        book = await self.get_book(book_id)
        book.title = title.strip()
        await self.db.commit()
        await self.db.refresh(book)
        return book

    async def move_book(self, book_id: int, folder: Optional[str]) -> Book:
        book = await self.get_book(book_id)
        target = await resolve_folder(self.db, folder)
        book.folder = target
        await self.db.commit()
        await self.db.refresh(book)
        return book

    # Folders

    async def list_folders(self) -> List[str]:
        """Folder names, the implicit "All" first."""
        result = await self.db.execute(select(Folder.name).order_by(Folder.created_at, Folder.id))
        return [ALL_FOLDER] + [row[0] for row in result.fetchall()]

    async def create_folder(self, name: str) -> Folder:
        name = name.strip()
        if await get_folder_by_name(self.db, name):
            raise FolderExists(name)
        folder = Folder(name=name)
        self.db.add(folder)
        await self.db.commit()
        await self.db.refresh(folder)
        return folder

    async def rename_folder(self, name: str, new_name: str) -> Folder:
        folder = await get_folder_by_name(self.db, name)
        if not folder:
            raise FolderNotFound(name)
        new_name = new_name.strip()
        if new_name != folder.name and await get_folder_by_name(self.db, new_name):
            raise FolderExists(new_name)
        folder.name = new_name
        await self.db.commit()
        await self.db.refresh(folder)
        return folder

    async def delete_folder(self, name: str, force: bool = False) -> int:
        """Remove a folder; refuses while books reference it unless forced.

        Forced deletion moves the folder's books back to "All" and returns
        how many were moved.
        """
        folder = await get_folder_by_name(self.db, name)
        if not folder:
            raise FolderNotFound(name)
        count = await self.db.scalar(select(func.count(Book.id)).where(Book.folder_id == folder.id))
        if count and not force:
            raise FolderInUse(folder.name, count)
        if count:
            await self.db.execute(
                update(Book)
                .where(Book.folder_id == folder.id)
                .values(folder_id=None)
                .execution_options(synchronize_session=False)
            )
        await self.db.delete(folder)
        await self.db.commit()
        logger.info(f"Deleted folder '{name}' ({count or 0} books moved to {ALL_FOLDER})")
        return count or 0

    # Statistics

    async def get_stats(self) -> Dict[str, int]:
        row = (await self.db.execute(
            select(
                func.count(Book.id).label("books"),
                func.sum(Book.downloads).label("downloads"),
                func.sum(Book.tts_requests).label("tts_requests"),
                func.sum(Book.words).label("words"),
                func.sum(Book.total_pages).label("total_pages"),
                func.sum(Book.processed_pages).label("processed_pages"),
            )
        )).one()
        processing = await self.db.scalar(select(func.count(Book.id)).where(Book.status == STATUS_PROCESSING))
        folders = await self.db.scalar(select(func.count(Folder.id)))

        return {
            "books": row.books or 0,
            "downloads": row.downloads or 0,
            "ttsRequests": row.tts_requests or 0,
            "words": row.words or 0,
            "totalPages": row.total_pages or 0,
            "processedPages": row.processed_pages or 0,
            "processing": processing or 0,
            "folders": folders or 0,
        }


async def get_catalog_service(db: AsyncSession = Depends(get_db)) -> CatalogService:
    """Dependency to get the catalog service."""
    return CatalogService(db)
