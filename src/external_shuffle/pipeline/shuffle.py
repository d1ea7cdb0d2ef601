import logging
import os
import random
import time
from dataclasses import dataclass
from pathlib import Path

from external_shuffle.chunk import (
    BUFFER_SIZE,
    DEFAULT_CHUNK_SIZE,
    MAX_OPEN_HANDLES,
    split_into_chunks,
)
from external_shuffle.errors import ChunkReadError, InputUnavailableError
from external_shuffle.execution import (
    XSHUF_EXECUTOR_ENV,
    describe_executor,
    is_gil_enabled,
    resolve_chunk_pool,
)
from external_shuffle.merge import SelectionPolicy, merge_chunks
from external_shuffle.pipeline.workspace import chunk_workspace

logger = logging.getLogger(__name__)

OUTPUT_PREFIX = "shuffled_"


@dataclass(frozen=True, slots=True)
class ShuffleResult:
    """Outcome of a completed shuffle run."""

    output_path: Path
    chunk_count: int
    line_count: int
    byte_count: int
    elapsed_seconds: float


def default_output_path(input_path: str | Path) -> Path:
    """Output name derived from the input's base name, in the working directory."""
    return Path(f"{OUTPUT_PREFIX}{Path(input_path).name}")


def _require_positive(name: str, value: int) -> None:
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")


def shuffle_file(
    input_path: str | Path,
    output_path: str | Path | None = None,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    buffer_size: int = BUFFER_SIZE,
    seed: int | None = None,
    rng: random.Random | None = None,
    tmp_dir: str | Path | None = None,
    policy: SelectionPolicy | str = SelectionPolicy.CHUNK,
    workers: int | None = None,
    max_open_handles: int = MAX_OPEN_HANDLES,
) -> ShuffleResult:
    """
    Randomly permute the lines of a file that may not fit in memory.

    Two-pass algorithm:
    1. Split the input into chunks of about chunk_size bytes, shuffle each
       in memory and write it to a temporary workspace
    2. Merge the chunks by repeatedly emitting the next line of a randomly
       drawn chunk
    3. Remove the workspace

    Pass rng for full control over randomness; otherwise a generator is
    seeded from seed (system entropy when seed is None).
    """
    total_start = time.perf_counter()

    _require_positive("chunk_size", chunk_size)
    _require_positive("buffer_size", buffer_size)
    _require_positive("max_open_handles", max_open_handles)
    if workers is not None:
        _require_positive("workers", workers)
    policy = SelectionPolicy(policy)

    input_file = Path(input_path)
    if not input_file.is_file():
        raise InputUnavailableError(f"Input file not found: {input_path}")
    output_file = Path(output_path) if output_path is not None else default_output_path(input_file)
    if output_file.resolve() == input_file.resolve():
        raise ValueError(f"Output path must differ from input path: {output_file}")

    if rng is None:
        rng = random.Random(seed)

    # Select executor based on policy.
    executor_class, workers = resolve_chunk_pool(workers)
    executor_name = describe_executor(executor_class)
    workers_desc = "-" if workers is None else str(workers)

    gil_status = "enabled" if is_gil_enabled() else "disabled"
    executor_override = os.environ.get(XSHUF_EXECUTOR_ENV, "")
    override_info = f", {XSHUF_EXECUTOR_ENV}={executor_override}" if executor_override else ""

    logger.info(
        f"Starting: file={input_file.name}, chunk_size={chunk_size}, buffer_size={buffer_size}, "
        f"selection={policy}, executor={executor_name}, workers={workers_desc}, "
        f"GIL={gil_status}{override_info}"
    )

    with chunk_workspace(tmp_dir) as workspace:
        # Pass 1: split into shuffled chunks.
        t1_start = time.perf_counter()
        chunks, chunk_stats = split_into_chunks(
            input_file,
            workspace,
            rng,
            chunk_size=chunk_size,
            buffer_size=buffer_size,
            executor_class=executor_class,
            workers=workers,
        )
        t1 = time.perf_counter() - t1_start
        logger.info(
            "Pass 1 done: %d chunks (%d lines, %d bytes) in %.2fs",
            len(chunks),
            chunk_stats.lines_read,
            chunk_stats.bytes_read,
            t1,
        )

        # Pass 2: merge chunks into the output.
        t2_start = time.perf_counter()
        merge_stats = merge_chunks(
            chunks,
            output_file,
            rng,
            buffer_size=buffer_size,
            policy=policy,
            max_open_handles=max_open_handles,
        )
        t2 = time.perf_counter() - t2_start
        logger.info(
            "Pass 2 done: %d lines merged from %d chunks in %.2fs",
            merge_stats.lines_written,
            merge_stats.chunks_merged,
            t2,
        )

        if merge_stats.lines_written != chunk_stats.lines_read:
            raise ChunkReadError(
                f"Merged {merge_stats.lines_written} lines but read {chunk_stats.lines_read}"
            )

        total_passes = t1 + t2
        if total_passes > 0:
            logger.debug(
                "Timing breakdown: Pass1=%.2fs (%.0f%%), Pass2=%.2fs (%.0f%%)",
                t1,
                100 * t1 / total_passes,
                t2,
                100 * t2 / total_passes,
            )

    total_time = time.perf_counter() - total_start
    logger.info("Total elapsed time %.2fs", total_time)

    return ShuffleResult(
        output_path=output_file,
        chunk_count=len(chunks),
        line_count=merge_stats.lines_written,
        byte_count=merge_stats.bytes_written,
        elapsed_seconds=total_time,
    )


def main_shuffle(input_path: str, output_path: str | None = None, **options) -> ShuffleResult:
    """Main entry point that prints the output path to stdout."""
    result = shuffle_file(input_path, output_path, **options)
    print(result.output_path)
    return result
