"""Scoped temporary directory for chunk files."""

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from external_shuffle.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "external_shuffle_"


@contextmanager
def chunk_workspace(base_dir: str | Path | None = None) -> Iterator[Path]:
    """
    Create a fresh directory for chunk files and remove it on exit.

    Args:
        base_dir: Parent directory; the system temp directory when None.

    Yields:
        Path of the new, empty workspace directory.
    """
    try:
        tmp_dir = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=base_dir))
    except OSError as exc:
        raise StorageUnavailableError(f"Cannot create temporary directory: {exc}") from exc

    logger.debug("Chunk workspace: %s", tmp_dir)
    try:
        yield tmp_dir
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
