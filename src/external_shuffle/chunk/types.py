"""Shared constants and metadata structures for chunking."""

from dataclasses import dataclass
from pathlib import Path

# 512MB of lines held in memory per chunk.
DEFAULT_CHUNK_SIZE = 512 * 1024 * 1024

# 8MB buffer for efficient I/O.
BUFFER_SIZE = 8 * 1024 * 1024

# Maximum number of chunk files the merger keeps open at once (LRU cache limit).
MAX_OPEN_HANDLES = 128

# Read buffer per merge cursor; one per open chunk file.
CURSOR_BUFFER_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class ChunkInfo:
    """One shuffled chunk file written to the workspace."""

    index: int
    path: Path
    line_count: int
    size_bytes: int


@dataclass
class ChunkStats:
    """Statistics from split_into_chunks operation."""

    lines_read: int = 0
    bytes_read: int = 0
    chunks_written: int = 0
    unterminated_lines: int = 0


def chunk_path(tmp_dir: Path, index: int) -> Path:
    return tmp_dir / f"chunk_{index:06d}.bin"
