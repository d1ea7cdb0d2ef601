"""Tests for the merge pass."""

import random
from collections import Counter
from pathlib import Path

import pytest

import external_shuffle.merge.cache as cache_module
from external_shuffle.chunk import ChunkInfo, split_into_chunks
from external_shuffle.errors import ChunkReadError, StorageUnavailableError
from external_shuffle.merge import SelectionPolicy, merge_chunks


def _make_chunk(tmp_path: Path, index: int, lines: list[bytes]) -> ChunkInfo:
    path = tmp_path / f"chunk_{index:06d}.bin"
    data = b"".join(lines)
    path.write_bytes(data)
    return ChunkInfo(index, path, len(lines), len(data))


class FailingReader:
    """Chunk reader that raises an I/O error after a number of lines."""

    def __init__(self, path, fail_after: int):
        self._handle = open(path, "rb")  # noqa: SIM115
        self._left = fail_after

    def readline(self) -> bytes:
        if self._left == 0:
            raise OSError(5, "Input/output error")
        self._left -= 1
        return self._handle.readline()

    def seek(self, offset: int) -> int:
        return self._handle.seek(offset)

    def close(self) -> None:
        self._handle.close()


class TestMergeChunks:
    """Test cases for merge_chunks function."""

    def test_emits_every_line_once(self, tmp_path: Path) -> None:
        chunks = [
            _make_chunk(tmp_path, 0, [b"a1\n", b"a2\n", b"a3\n"]),
            _make_chunk(tmp_path, 1, [b"b1\n"]),
            _make_chunk(tmp_path, 2, [b"c1\n", b"c2\n"]),
        ]
        output = tmp_path / "out.txt"

        stats = merge_chunks(chunks, output, random.Random(2), buffer_size=4)

        lines = output.read_bytes().splitlines(keepends=True)
        assert Counter(lines) == Counter(
            [b"a1\n", b"a2\n", b"a3\n", b"b1\n", b"c1\n", b"c2\n"]
        )
        assert stats.lines_written == 6
        assert stats.bytes_written == 18
        assert stats.chunks_merged == 3

    def test_keeps_each_chunk_internal_order(self, tmp_path: Path) -> None:
        """Test that lines of one chunk come out in the chunk's own order."""
        chunks = [
            _make_chunk(tmp_path, 0, [f"a{i}\n".encode() for i in range(20)]),
            _make_chunk(tmp_path, 1, [f"b{i}\n".encode() for i in range(20)]),
        ]
        output = tmp_path / "out.txt"

        merge_chunks(chunks, output, random.Random(4))

        lines = output.read_bytes().splitlines(keepends=True)
        assert [line for line in lines if line.startswith(b"a")] == [
            f"a{i}\n".encode() for i in range(20)
        ]

    def test_no_chunks_creates_empty_output(self, tmp_path: Path) -> None:
        output = tmp_path / "out.txt"

        stats = merge_chunks([], output, random.Random(1))

        assert output.exists()
        assert output.read_bytes() == b""
        assert stats.lines_written == 0

    def test_overwrites_existing_output(self, tmp_path: Path) -> None:
        output = tmp_path / "out.txt"
        output.write_bytes(b"stale\nstale\nstale\n")
        chunks = [_make_chunk(tmp_path, 0, [b"fresh\n"])]

        merge_chunks(chunks, output, random.Random(1))

        assert output.read_bytes() == b"fresh\n"

    def test_leaves_chunk_files_in_place(self, tmp_path: Path) -> None:
        chunks = [_make_chunk(tmp_path, 0, [b"x\n", b"y\n"])]

        merge_chunks(chunks, tmp_path / "out.txt", random.Random(1))

        assert chunks[0].path.read_bytes() == b"x\ny\n"

    @pytest.mark.parametrize("policy", list(SelectionPolicy))
    def test_more_chunks_than_open_handles(self, tmp_path: Path, policy) -> None:
        """Test that handle recycling loses no lines."""
        expected = []
        chunks = []
        for index in range(12):
            lines = [f"{index}-{i}\n".encode() for i in range(index + 1)]
            expected.extend(lines)
            chunks.append(_make_chunk(tmp_path, index, lines))
        output = tmp_path / "out.txt"

        stats = merge_chunks(chunks, output, random.Random(9), policy=policy, max_open_handles=3)

        assert Counter(output.read_bytes().splitlines(keepends=True)) == Counter(expected)
        assert stats.lines_written == len(expected)

    def test_chunk_policy_favours_short_chunk_early(self, tmp_path: Path) -> None:
        """Test the known bias: a 1-line chunk leads half the time vs 3 lines."""
        chunks = [
            _make_chunk(tmp_path, 0, [b"x\n"]),
            _make_chunk(tmp_path, 1, [b"y1\n", b"y2\n", b"y3\n"]),
        ]
        output = tmp_path / "out.txt"
        rng = random.Random(0)

        first = Counter()
        for _ in range(2000):
            merge_chunks(chunks, output, rng, policy=SelectionPolicy.CHUNK)
            first[output.read_bytes().split(b"\n", 1)[0]] += 1

        assert 0.45 < first[b"x"] / 2000 < 0.55

    def test_line_policy_is_uniform_over_positions(self, tmp_path: Path) -> None:
        """Test that weighting by remaining lines puts x first 1/4 of the time."""
        chunks = [
            _make_chunk(tmp_path, 0, [b"x\n"]),
            _make_chunk(tmp_path, 1, [b"y1\n", b"y2\n", b"y3\n"]),
        ]
        output = tmp_path / "out.txt"
        rng = random.Random(0)

        first = Counter()
        for _ in range(2000):
            merge_chunks(chunks, output, rng, policy=SelectionPolicy.LINE)
            first[output.read_bytes().split(b"\n", 1)[0]] += 1

        assert 0.20 < first[b"x"] / 2000 < 0.30

    def test_read_failure_aborts_merge(self, tmp_path: Path, monkeypatch) -> None:
        """Test that a chunk failing after k lines aborts with a read error."""
        lines = [f"line{i}\n".encode() for i in range(5)]
        chunks = [_make_chunk(tmp_path, 0, lines)]
        output = tmp_path / "out.txt"

        def flaky_open(path, mode="r", buffering=-1):
            return FailingReader(path, fail_after=3)

        monkeypatch.setattr(cache_module, "open", flaky_open, raising=False)

        with pytest.raises(ChunkReadError):
            merge_chunks(chunks, output, random.Random(1))

        written = output.read_bytes().splitlines(keepends=True)
        assert len(written) <= 3
        assert written == lines[: len(written)]

    def test_truncated_chunk_aborts_merge(self, tmp_path: Path) -> None:
        input_path = tmp_path / "in.txt"
        input_path.write_bytes(b"".join(f"{i:03d}\n".encode() for i in range(100)))
        work = tmp_path / "work"
        work.mkdir()
        chunks, _ = split_into_chunks(input_path, work, random.Random(1), chunk_size=100)

        # Cut the middle chunk after its first line.
        victim = chunks[len(chunks) // 2].path
        victim.write_bytes(victim.read_bytes()[:4])

        with pytest.raises(ChunkReadError):
            merge_chunks(chunks, tmp_path / "out.txt", random.Random(1))

    def test_unwritable_output_raises_storage_error(self, tmp_path: Path) -> None:
        chunks = [_make_chunk(tmp_path, 0, [b"a\n"])]

        with pytest.raises(StorageUnavailableError):
            merge_chunks(chunks, tmp_path / "missing_dir" / "out.txt", random.Random(1))


@pytest.mark.parametrize("policy", list(SelectionPolicy))
def test_recorded_line_count_mismatch_aborts_merge(tmp_path: Path, policy) -> None:
    """Test that a chunk with fewer lines than recorded is not silently accepted."""
    path = tmp_path / "chunk_000000.bin"
    path.write_bytes(b"a\nb\n")
    chunks = [
        ChunkInfo(0, path, 5, 4),
        _make_chunk(tmp_path, 1, [b"c\n"]),
    ]

    with pytest.raises(ChunkReadError):
        merge_chunks(chunks, tmp_path / "out.txt", random.Random(1), policy=policy)
