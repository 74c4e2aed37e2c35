#!/usr/bin/env python3
"""
Helper script that removes local data before Git or Docker operations.

Deletes SQLite databases and leftover ingestion workspaces in backend/data,
then recreates the .gitkeep placeholder so the directory stays in the repo.
"""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = PROJECT_ROOT / "backend" / "data"
PATTERNS = ("*.db", "*.sqlite", "*.sqlite3")
WORKSPACE_GLOB = "tmp/job-*"


def wipe_data(data_dir: Path = DATA_DIR, dry_run: bool = False) -> list[Path]:
    if not data_dir.exists():
        print(f"[INFO] Data directory {data_dir} does not exist - nothing to do.")
        return []

    placeholder = data_dir / ".gitkeep"
    targets = [f for pattern in PATTERNS for f in data_dir.glob(pattern)]
    targets += [d for d in data_dir.glob(WORKSPACE_GLOB) if d.is_dir()]

    for target in targets:
        if dry_run:
            print(f"[DRY-RUN] Would delete: {target}")
        elif target.is_dir():
            shutil.rmtree(target)
            print(f"[OK] Deleted workspace: {target}")
        else:
            target.unlink(missing_ok=True)
            print(f"[OK] Deleted: {target}")

    if not targets:
        print("[INFO] No databases or workspaces found.")

    if not placeholder.exists():
        if dry_run:
            print(f"[DRY-RUN] Would write placeholder: {placeholder}")
        else:
            placeholder.write_text(
                "Keeps the data directory in the repository.\n"
                "Make sure only test data (or nothing) lives here before committing "
                "or building an image.\n",
                encoding="utf-8",
            )
            print(f"[OK] Placeholder created: {placeholder}")

    return targets


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Delete local Storyteller databases and upload workspaces before commits/builds."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Delete nothing, only show what would happen.",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DATA_DIR,
        help="Data directory to clean (default: backend/data).",
    )
    args = parser.parse_args(argv)
    wipe_data(args.data_dir, dry_run=args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
