"""Chunking pass: split input into independently shuffled chunk files."""

from external_shuffle.chunk.chunker import (
    iter_chunks,
    read_input_lines,
    shuffle_lines,
    split_into_chunks,
    write_chunk,
)
from external_shuffle.chunk.types import (
    BUFFER_SIZE,
    CURSOR_BUFFER_SIZE,
    DEFAULT_CHUNK_SIZE,
    MAX_OPEN_HANDLES,
    ChunkInfo,
    ChunkStats,
    chunk_path,
)

__all__ = [
    "BUFFER_SIZE",
    "CURSOR_BUFFER_SIZE",
    "DEFAULT_CHUNK_SIZE",
    "MAX_OPEN_HANDLES",
    "ChunkInfo",
    "ChunkStats",
    "chunk_path",
    "iter_chunks",
    "read_input_lines",
    "shuffle_lines",
    "split_into_chunks",
    "write_chunk",
]
