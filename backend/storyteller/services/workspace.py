"""Scoped scratch directories for ingestion jobs."""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

JOB_PREFIX = "job-"


@contextmanager
def job_workspace(root: Path):
    """Yield a fresh directory under ``root`` that is removed on every exit path."""
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    workdir = Path(tempfile.mkdtemp(prefix=JOB_PREFIX, dir=root))
    try:
        yield workdir
    finally:
        shutil.rmtree(workdir, ignore_errors=True)
        logger.debug(f"Removed workspace {workdir}")
