"""File-handle cache used by merge cursors."""

from collections import OrderedDict
from typing import BinaryIO

from external_shuffle.chunk.types import CURSOR_BUFFER_SIZE, ChunkInfo
from external_shuffle.errors import ChunkReadError


class LRUHandleCache:
    """LRU cache for chunk read handles to prevent file descriptor exhaustion."""

    def __init__(self, max_handles: int, buffer_size: int = CURSOR_BUFFER_SIZE):
        if max_handles < 1:
            raise ValueError(f"max_handles must be a positive integer, got {max_handles}")
        self._max_handles = max_handles
        self._buffer_size = buffer_size
        self._cache: OrderedDict[int, BinaryIO] = OrderedDict()

    def get(self, chunk: ChunkInfo, offset: int) -> BinaryIO:
        """
        Return a read handle for chunk positioned at offset.

        A cached handle is already at the owning cursor's offset because no
        other cursor reads the same chunk. A reopened handle seeks there.
        """
        if chunk.index in self._cache:
            self._cache.move_to_end(chunk.index)
            return self._cache[chunk.index]

        while len(self._cache) >= self._max_handles:
            _, old_handle = self._cache.popitem(last=False)
            old_handle.close()

        try:
            handle = open(chunk.path, "rb", buffering=self._buffer_size)  # noqa: SIM115
        except OSError as exc:
            raise ChunkReadError(f"Cannot open chunk {chunk.path}: {exc}") from exc

        try:
            if offset:
                handle.seek(offset)
        except OSError as exc:
            handle.close()
            raise ChunkReadError(f"Cannot seek chunk {chunk.path} to {offset}: {exc}") from exc

        self._cache[chunk.index] = handle
        return handle

    def close(self, chunk_index: int) -> None:
        """Close the handle for one chunk if it is open."""
        handle = self._cache.pop(chunk_index, None)
        if handle is not None:
            handle.close()

    def close_all(self) -> None:
        """Close all open file handles."""
        for handle in self._cache.values():
            handle.close()
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, chunk_index: int) -> bool:
        return chunk_index in self._cache
