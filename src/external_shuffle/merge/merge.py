"""Merge pass: interleave shuffled chunk files into the output."""

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from external_shuffle.chunk.types import (
    BUFFER_SIZE,
    CURSOR_BUFFER_SIZE,
    MAX_OPEN_HANDLES,
    ChunkInfo,
)
from external_shuffle.errors import ChunkReadError, StorageUnavailableError
from external_shuffle.merge.cache import LRUHandleCache
from external_shuffle.merge.cursor import ChunkCursor
from external_shuffle.merge.selection import SelectionPolicy, get_selector

logger = logging.getLogger(__name__)


@dataclass
class MergeStats:
    """Statistics from merge_chunks operation."""

    chunks_merged: int = 0
    lines_written: int = 0
    bytes_written: int = 0


def merge_chunks(
    chunks: Sequence[ChunkInfo],
    output_path: str | Path,
    rng: random.Random,
    buffer_size: int = BUFFER_SIZE,
    policy: SelectionPolicy | str = SelectionPolicy.CHUNK,
    max_open_handles: int = MAX_OPEN_HANDLES,
) -> MergeStats:
    """
    Write every line of every chunk to output_path in random interleaved order.

    At each step one non-exhausted cursor is drawn according to policy, its
    buffered line is written and the cursor advances. The loop runs exactly
    once per line across all chunks. Chunk files are only read; deleting
    them is left to the caller.

    Args:
        chunks: Chunk metadata from split_into_chunks.
        output_path: File to create or overwrite.
        rng: Source of the draws.
        buffer_size: Output write buffer capacity in bytes.
        policy: "chunk" (uniform over active chunks) or "line" (weighted by
            remaining lines).
        max_open_handles: Cap on simultaneously open chunk files.

    Returns:
        Merge statistics.
    """
    select = get_selector(policy)
    stats = MergeStats(chunks_merged=len(chunks))

    if len(chunks) > max_open_handles:
        logger.warning(
            "%d chunks exceed the open-handle cap of %d; chunk files will be reopened",
            len(chunks),
            max_open_handles,
        )

    handles = LRUHandleCache(max_open_handles, min(buffer_size, CURSOR_BUFFER_SIZE))
    try:
        try:
            with open(output_path, "wb", buffering=buffer_size) as output:
                cursors = [ChunkCursor(chunk, handles) for chunk in chunks]
                active = [cursor for cursor in cursors if not cursor.exhausted]
                total_remaining = sum(cursor.remaining for cursor in active)

                while active:
                    position = select(active, rng, total_remaining)
                    cursor = active[position]
                    line = cursor.take()
                    total_remaining -= 1
                    output.write(line)
                    stats.lines_written += 1
                    stats.bytes_written += len(line)

                    if cursor.exhausted:
                        if cursor.remaining:
                            raise ChunkReadError(
                                f"Chunk {cursor.chunk.path} ended {cursor.remaining} lines "
                                f"short of the {cursor.chunk.line_count} recorded"
                            )
                        # Swap-remove; draws do not depend on cursor order.
                        active[position] = active[-1]
                        active.pop()
                        logger.debug(
                            "Chunk %d exhausted, %d remaining", cursor.chunk.index, len(active)
                        )
        except OSError as exc:
            # Cursor failures arrive as ChunkReadError; OSError here is the output.
            raise StorageUnavailableError(f"Cannot write output {output_path}: {exc}") from exc
    finally:
        handles.close_all()

    return stats
