"""Per-book lock registry and scoped workspace tests."""

import asyncio

import pytest

from storyteller.services.locks import BookLocks
from storyteller.services.workspace import job_workspace


async def test_same_book_is_serialized():
    locks = BookLocks()
    order = []

    async def worker(name):
        async with locks.hold(1):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


async def test_different_books_run_concurrently():
    locks = BookLocks()
    inside = set()
    overlap = []

    async def worker(book_id):
        async with locks.hold(book_id):
            inside.add(book_id)
            await asyncio.sleep(0.01)
            overlap.append(len(inside))
            inside.discard(book_id)

    await asyncio.gather(worker(1), worker(2))
    assert max(overlap) == 2


async def test_entries_are_dropped_after_use():
    locks = BookLocks()
    async with locks.hold(7):
        assert len(locks) == 1
    assert len(locks) == 0


async def test_entry_released_on_error():
    locks = BookLocks()
    with pytest.raises(RuntimeError):
        async with locks.hold(3):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_workspace_removed_after_success(tmp_path):
    with job_workspace(tmp_path / "jobs") as workdir:
        (workdir / "upload.pdf").write_bytes(b"%PDF")
        assert workdir.exists()
    assert not workdir.exists()
    assert list((tmp_path / "jobs").iterdir()) == []


def test_workspace_removed_after_error(tmp_path):
    with pytest.raises(ValueError):
        with job_workspace(tmp_path) as workdir:
            (workdir / "page.png").write_bytes(b"png")
            raise ValueError("render failed")
    assert not workdir.exists()


def test_workspaces_are_unique(tmp_path):
    with job_workspace(tmp_path) as a, job_workspace(tmp_path) as b:
        assert a != b
        assert a.name.startswith("job-")
