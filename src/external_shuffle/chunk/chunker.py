"""Chunking pass: stream input lines into independently shuffled chunk files."""

import logging
import random
import time
from collections.abc import Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, wait
from pathlib import Path
from typing import BinaryIO

from external_shuffle.chunk.types import (
    BUFFER_SIZE,
    DEFAULT_CHUNK_SIZE,
    ChunkInfo,
    ChunkStats,
    chunk_path,
)
from external_shuffle.errors import InputUnavailableError, StorageUnavailableError
from external_shuffle.execution import ExecutorClass

logger = logging.getLogger(__name__)


def iter_chunks(lines: Iterable[bytes], chunk_size: int) -> Iterator[list[bytes]]:
    """
    Group a line stream into lists of at least chunk_size bytes.

    A list is yielded as soon as its cumulative size reaches chunk_size, so
    every chunk but the last ends on the line that crossed the threshold.
    A non-empty remainder is yielded last; an empty stream yields nothing.
    """
    chunk: list[bytes] = []
    chunk_bytes = 0

    for line in lines:
        chunk.append(line)
        chunk_bytes += len(line)
        if chunk_bytes >= chunk_size:
            yield chunk
            # Fresh list: the yielded one may still be in use by a worker.
            chunk = []
            chunk_bytes = 0

    if chunk:
        yield chunk


def shuffle_lines(lines: list[bytes], rng: random.Random) -> None:
    """Permute lines in place; Random.shuffle is a Fisher-Yates shuffle."""
    rng.shuffle(lines)


def write_chunk(
    lines: list[bytes],
    path: Path,
    rng: random.Random,
    buffer_size: int = BUFFER_SIZE,
) -> int:
    """
    Shuffle lines and write them to a new chunk file.

    The file is opened in exclusive-create mode so an existing chunk is never
    overwritten.

    Returns:
        Number of bytes written.
    """
    shuffle_lines(lines, rng)
    try:
        with open(path, "xb", buffering=buffer_size) as handle:
            handle.writelines(lines)
    except OSError as exc:
        raise StorageUnavailableError(f"Cannot write chunk {path}: {exc}") from exc
    return sum(len(line) for line in lines)


def read_input_lines(handle: BinaryIO, stats: ChunkStats) -> Iterator[bytes]:
    """
    Yield raw lines from an open input, updating stats as they are read.

    A final line without a trailing newline gets one appended, otherwise it
    would fuse with whichever line follows it after shuffling.
    """
    try:
        for line in handle:
            stats.lines_read += 1
            stats.bytes_read += len(line)
            if not line.endswith(b"\n"):
                stats.unterminated_lines += 1
                line += b"\n"
            yield line
    except OSError as exc:
        raise InputUnavailableError(f"Failed reading input: {exc}") from exc


def _write_job(
    tmp_dir: str,
    index: int,
    lines: list[bytes],
    seed: int,
    buffer_size: int,
) -> ChunkInfo:
    """Shuffle and write one chunk; top-level so process pools can pickle it."""
    start = time.perf_counter()
    path = chunk_path(Path(tmp_dir), index)
    size_bytes = write_chunk(lines, path, random.Random(seed), buffer_size)
    logger.debug(
        "Shuffling chunk %d took %.3fs (%d lines, %d bytes)",
        index + 1,
        time.perf_counter() - start,
        len(lines),
        size_bytes,
    )
    return ChunkInfo(index, path, len(lines), size_bytes)


def _collect(
    done: Iterable[Future[ChunkInfo]],
    pending: dict[Future[ChunkInfo], list[bytes]],
) -> list[ChunkInfo]:
    """Wait for futures, then free their chunks and return their results."""
    results = []
    for future in done:
        results.append(future.result())
        pending.pop(future).clear()
    return results


def split_into_chunks(
    input_path: str | Path,
    tmp_dir: str | Path,
    rng: random.Random,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    buffer_size: int = BUFFER_SIZE,
    executor_class: ExecutorClass = None,
    workers: int | None = None,
) -> tuple[list[ChunkInfo], ChunkStats]:
    """
    Split the input into shuffled chunk files inside tmp_dir.

    Each chunk is shuffled with its own generator seeded from rng in chunk
    order, so a seeded run writes identical chunks whether it runs serially
    or on a pool. With a pool, at most `workers` chunks are in flight.

    Args:
        input_path: Path to the newline-delimited input file.
        tmp_dir: Existing directory that receives the chunk files.
        rng: Source of the per-chunk seeds.
        chunk_size: Byte threshold that closes a chunk.
        buffer_size: Read and write buffer capacity in bytes.
        executor_class: Pool class for shuffling, or None for serial.
        workers: Pool size; required when executor_class is set.

    Returns:
        Tuple of (chunk metadata in index order, chunking statistics).
    """
    tmp_dir = str(tmp_dir)
    stats = ChunkStats()
    infos: list[ChunkInfo] = []

    try:
        handle = open(input_path, "rb", buffering=buffer_size)  # noqa: SIM115
    except OSError as exc:
        raise InputUnavailableError(f"Cannot open input {input_path}: {exc}") from exc

    with handle:
        chunks = iter_chunks(read_input_lines(handle, stats), chunk_size)

        if executor_class is None:
            for index, lines in enumerate(chunks):
                seed = rng.getrandbits(64)
                infos.append(_write_job(tmp_dir, index, lines, seed, buffer_size))
                # Release the written chunk before iter_chunks fills the next one.
                lines.clear()
        else:
            if workers is None or workers < 1:
                raise ValueError(f"workers must be a positive integer, got {workers}")
            with executor_class(max_workers=workers) as executor:
                # Each in-flight future keeps its chunk until the worker is done.
                pending: dict[Future[ChunkInfo], list[bytes]] = {}
                for index, lines in enumerate(chunks):
                    seed = rng.getrandbits(64)
                    if len(pending) >= workers:
                        done, _ = wait(pending, return_when=FIRST_COMPLETED)
                        infos.extend(_collect(done, pending))
                    future = executor.submit(_write_job, tmp_dir, index, lines, seed, buffer_size)
                    pending[future] = lines
                infos.extend(_collect(list(pending), pending))
            infos.sort(key=lambda info: info.index)

    stats.chunks_written = len(infos)
    if stats.unterminated_lines:
        logger.warning("Appended a newline to %d unterminated line(s)", stats.unterminated_lines)

    return infos, stats
