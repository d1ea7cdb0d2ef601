"""Tests for chunk cursors."""

import io
from pathlib import Path

import pytest

from external_shuffle.chunk import ChunkInfo
from external_shuffle.errors import ChunkReadError
from external_shuffle.merge import ChunkCursor, LRUHandleCache


class FailingHandle:
    """Read handle that raises after serving a fixed number of lines."""

    def __init__(self, data: bytes, fail_after: int):
        self._stream = io.BytesIO(data)
        self._left = fail_after

    def readline(self) -> bytes:
        if self._left == 0:
            raise OSError(5, "Input/output error")
        self._left -= 1
        return self._stream.readline()


class SingleHandleCache:
    """Stand-in cache that always hands out the same handle."""

    def __init__(self, handle):
        self.handle = handle
        self.closed: list[int] = []

    def get(self, chunk: ChunkInfo, offset: int):
        return self.handle

    def close(self, chunk_index: int) -> None:
        self.closed.append(chunk_index)


def _make_chunk(tmp_path: Path, data: bytes, size_bytes: int | None = None) -> ChunkInfo:
    path = tmp_path / "chunk_000000.bin"
    path.write_bytes(data)
    size = len(data) if size_bytes is None else size_bytes
    return ChunkInfo(0, path, data.count(b"\n"), size)


class TestChunkCursor:
    """Test cases for ChunkCursor."""

    def test_prefetches_first_line(self, tmp_path: Path) -> None:
        chunk = _make_chunk(tmp_path, b"one\ntwo\n")
        handles = LRUHandleCache(4)
        try:
            cursor = ChunkCursor(chunk, handles)
            assert cursor.line == b"one\n"
            assert not cursor.exhausted
            assert cursor.remaining == 2
        finally:
            handles.close_all()

    def test_take_walks_lines_until_exhausted(self, tmp_path: Path) -> None:
        chunk = _make_chunk(tmp_path, b"one\ntwo\nthree\n")
        handles = LRUHandleCache(4)
        try:
            cursor = ChunkCursor(chunk, handles)
            taken = []
            while not cursor.exhausted:
                taken.append(cursor.take())

            assert taken == [b"one\n", b"two\n", b"three\n"]
            assert cursor.remaining == 0
            assert cursor.offset == chunk.size_bytes
            # Exhausted cursors release their handle.
            assert 0 not in handles
        finally:
            handles.close_all()

    def test_take_after_exhaustion_raises(self, tmp_path: Path) -> None:
        chunk = _make_chunk(tmp_path, b"only\n")
        handles = LRUHandleCache(4)
        try:
            cursor = ChunkCursor(chunk, handles)
            cursor.take()
            with pytest.raises(ChunkReadError):
                cursor.take()
        finally:
            handles.close_all()

    def test_empty_chunk_starts_exhausted(self, tmp_path: Path) -> None:
        chunk = _make_chunk(tmp_path, b"")
        handles = LRUHandleCache(4)
        try:
            assert ChunkCursor(chunk, handles).exhausted
        finally:
            handles.close_all()

    def test_truncated_chunk_is_not_exhaustion(self, tmp_path: Path) -> None:
        """Test that a chunk shorter than recorded raises instead of ending."""
        chunk = _make_chunk(tmp_path, b"one\ntwo\n", size_bytes=12)
        handles = LRUHandleCache(4)
        try:
            cursor = ChunkCursor(chunk, handles)
            cursor.take()
            with pytest.raises(ChunkReadError, match="expected 12"):
                cursor.take()
        finally:
            handles.close_all()

    def test_chunk_longer_than_recorded_raises(self, tmp_path: Path) -> None:
        chunk = _make_chunk(tmp_path, b"one\ntwo\n", size_bytes=4)
        handles = LRUHandleCache(4)
        try:
            cursor = ChunkCursor(chunk, handles)
            with pytest.raises(ChunkReadError, match="longer"):
                cursor.take()
        finally:
            handles.close_all()

    def test_read_failure_raises_read_error(self, tmp_path: Path) -> None:
        """Test that an I/O error mid-chunk is reported, not treated as EOF."""
        data = b"a\nb\nc\nd\n"
        chunk = _make_chunk(tmp_path, data)
        handles = SingleHandleCache(FailingHandle(data, fail_after=2))

        cursor = ChunkCursor(chunk, handles)
        assert cursor.take() == b"a\n"
        with pytest.raises(ChunkReadError) as excinfo:
            cursor.take()

        assert isinstance(excinfo.value.__cause__, OSError)
        assert handles.closed == []
