"""Tests for scripts/sanitize_data.py."""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "sanitize_data.py"


@pytest.fixture(scope="module")
def sanitize():
    spec = importlib.util.spec_from_file_location("sanitize_data", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "storyteller.db").write_bytes(b"sqlite")
    (tmp_path / "notes.txt").write_text("keep me")
    job = tmp_path / "tmp" / "job-abc123"
    job.mkdir(parents=True)
    (job / "upload.pdf").write_bytes(b"%PDF")
    return tmp_path


def test_wipe_removes_databases_and_workspaces(sanitize, data_dir):
    removed = sanitize.wipe_data(data_dir)

    assert {p.name for p in removed} == {"storyteller.db", "job-abc123"}
    assert not (data_dir / "storyteller.db").exists()
    assert not (data_dir / "tmp" / "job-abc123").exists()
    assert (data_dir / "notes.txt").exists()
    assert (data_dir / ".gitkeep").exists()


def test_dry_run_touches_nothing(sanitize, data_dir):
    sanitize.main(["--dry-run", "--data-dir", str(data_dir)])

    assert (data_dir / "storyteller.db").exists()
    assert (data_dir / "tmp" / "job-abc123").exists()
    assert not (data_dir / ".gitkeep").exists()


def test_missing_directory(sanitize, tmp_path):
    assert sanitize.wipe_data(tmp_path / "nope") == []
