"""Per-book locks serializing cursor advances within this process."""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class BookLocks:
    """Registry of one asyncio.Lock per book id.

    Entries are reference counted and dropped once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}
        self._lock = asyncio.Lock()

    async def _acquire_entry(self, book_id: int) -> asyncio.Lock:
        async with self._lock:
            lock = self._locks.setdefault(book_id, asyncio.Lock())
            self._users[book_id] = self._users.get(book_id, 0) + 1
            return lock

    async def _release_entry(self, book_id: int) -> None:
        async with self._lock:
            self._users[book_id] -= 1
            if self._users[book_id] == 0:
                del self._users[book_id]
                del self._locks[book_id]

    @asynccontextmanager
    async def hold(self, book_id: int):
        lock = await self._acquire_entry(book_id)
        try:
            async with lock:
                yield
        finally:
            await self._release_entry(book_id)

    def __len__(self) -> int:
        return len(self._locks)


# Global lock registry
book_locks = BookLocks()


def get_book_locks() -> BookLocks:
    """Get the global per-book lock registry."""
    return book_locks
