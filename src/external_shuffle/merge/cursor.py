"""Pull-based read cursors over chunk files."""

from external_shuffle.chunk.types import ChunkInfo
from external_shuffle.errors import ChunkReadError
from external_shuffle.merge.cache import LRUHandleCache


class ChunkCursor:
    """
    Read state over one chunk file: a byte offset plus one pre-fetched line.

    `line` is None once the chunk is exhausted. Exhaustion is only accepted
    at the byte size recorded when the chunk was written; a read error or a
    short file raises ChunkReadError instead.
    """

    __slots__ = ("chunk", "line", "offset", "remaining", "_handles")

    def __init__(self, chunk: ChunkInfo, handles: LRUHandleCache):
        self.chunk = chunk
        self.offset = 0
        # Lines not yet handed out by take(), including the pre-fetched one.
        self.remaining = chunk.line_count
        self.line: bytes | None = None
        self._handles = handles
        self._fetch()

    @property
    def exhausted(self) -> bool:
        return self.line is None

    def take(self) -> bytes:
        """Return the pre-fetched line and read the next one."""
        line = self.line
        if line is None:
            raise ChunkReadError(f"Cursor over {self.chunk.path} is exhausted")
        self.remaining -= 1
        self._fetch()
        return line

    def _fetch(self) -> None:
        path = self.chunk.path
        handle = self._handles.get(self.chunk, self.offset)
        try:
            line = handle.readline()
        except OSError as exc:
            raise ChunkReadError(
                f"Failed reading chunk {path} at byte {self.offset}: {exc}"
            ) from exc

        if not line:
            if self.offset != self.chunk.size_bytes:
                raise ChunkReadError(
                    f"Chunk {path} ended at byte {self.offset}, "
                    f"expected {self.chunk.size_bytes}"
                )
            self._handles.close(self.chunk.index)
            self.line = None
            return

        self.offset += len(line)
        if self.offset > self.chunk.size_bytes:
            raise ChunkReadError(
                f"Chunk {path} is longer than the {self.chunk.size_bytes} bytes written"
            )
        self.line = line
