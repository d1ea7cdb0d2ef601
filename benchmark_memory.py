#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.12"
# dependencies = ["psutil"]
# ///
"""
Benchmark peak memory and wall-clock time of the shuffler across chunk sizes.

Runs `python -m external_shuffle.cli` on one input several times per chunk
size, measures wall-clock time and peak RSS (process tree), verifies that the
output holds as many lines as the input, and reports a statistical summary.
Peak RSS should track the chunk size, not the input size.

Uses psutil to track memory across the entire process tree (parent + all
children), which matters when chunks are shuffled on a process pool.
"""

import argparse
import logging
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from statistics import median

# Check for psutil early
try:
    import psutil
except ImportError:
    sys.stderr.write("ERROR: psutil is required for process-tree memory benchmarking.\n")
    sys.stderr.write("Install with: pip install psutil\n")
    sys.stderr.write("Or if using uv: uv pip install psutil\n")
    sys.exit(1)

logger = logging.getLogger(__name__)


def sample_tree_rss(root_proc: psutil.Process) -> int:
    """Sum the RSS of a process and all of its descendants."""
    total_rss = 0

    try:
        total_rss += root_proc.memory_info().rss
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        pass

    try:
        for child in root_proc.children(recursive=True):
            try:
                total_rss += child.memory_info().rss
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        pass

    return total_rss


def measure_peak_rss_tree(
    root_pid: int,
    poll_interval_s: float,
    proc: subprocess.Popen,
) -> int:
    """
    Measure peak RSS across the entire process tree while process runs.

    Returns:
        Peak total RSS in bytes across the process tree.
    """
    try:
        root_proc = psutil.Process(root_pid)
    except psutil.NoSuchProcess:
        return 0

    peak_bytes = 0
    while proc.poll() is None:
        peak_bytes = max(peak_bytes, sample_tree_rss(root_proc))
        time.sleep(poll_interval_s)

    return peak_bytes


def count_lines(path: Path) -> int:
    """Count newline-terminated lines without loading the file."""
    count = 0
    with open(path, "rb") as handle:
        while block := handle.read(1024 * 1024):
            count += block.count(b"\n")
    return count


def run_benchmark(
    input_file: str,
    chunk_size: str,
    extra_args: list[str],
    env_overrides: dict[str, str],
    mem_sample_ms: int,
) -> dict:
    """
    Run the shuffler once and capture timing and memory metrics.

    Returns:
        Dict with keys: chunk_size, seconds, peak_rss_tree_mib, output_lines.
    """
    env = os.environ.copy()
    env.update(env_overrides)

    with tempfile.TemporaryDirectory(prefix="shuffle_bench_") as out_dir:
        output_path = Path(out_dir) / "shuffled.txt"
        cmd = [
            sys.executable,
            "-m",
            "external_shuffle.cli",
            input_file,
            "--output",
            str(output_path),
            "--chunk-size",
            chunk_size,
            "--log-level",
            "WARNING",
            *extra_args,
        ]

        start_time = time.perf_counter()
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        peak_rss_bytes = measure_peak_rss_tree(proc.pid, mem_sample_ms / 1000.0, proc)
        _, stderr = proc.communicate()
        elapsed = time.perf_counter() - start_time

        if proc.returncode != 0:
            logger.error("Error running benchmark (chunk size %s):", chunk_size)
            logger.error("%s", stderr)
            sys.exit(1)

        output_lines = count_lines(output_path)

    return {
        "chunk_size": chunk_size,
        "seconds": elapsed,
        "peak_rss_tree_mib": peak_rss_bytes / (1024 * 1024),
        "output_lines": output_lines,
    }


def compute_stats(results: list[dict]) -> dict:
    """Compute statistics from a list of benchmark results."""
    times = [r["seconds"] for r in results]
    rss_tree = [r["peak_rss_tree_mib"] for r in results]

    return {
        "median_time": median(times),
        "min_time": min(times),
        "max_time": max(times),
        "median_rss_tree": median(rss_tree),
        "max_rss_tree": max(rss_tree),
        "output_lines": {r["output_lines"] for r in results},
    }


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Benchmark shuffler memory and time across chunk sizes."
    )
    parser.add_argument("input_file", help="Path to input data file")
    parser.add_argument(
        "--chunk-sizes",
        nargs="+",
        default=["16M", "64M", "256M"],
        help="Chunk sizes to compare (default: 16M 64M 256M)",
    )
    parser.add_argument(
        "--trials", type=int, default=3, help="Number of timed trials per chunk size (default: 3)"
    )
    parser.add_argument(
        "--mem-sample-ms",
        type=int,
        default=75,
        help="Memory sampling interval in milliseconds (default: 75)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Pass --workers to the shuffler (default: serial)",
    )
    parser.add_argument(
        "--executor",
        choices=["auto", "serial", "threads", "processes"],
        default="auto",
        help="Force executor type via XSHUF_EXECUTOR (default: auto)",
    )
    parser.add_argument(
        "--selection",
        choices=["chunk", "line"],
        default="chunk",
        help="Merge selection policy passed to the shuffler (default: chunk)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args()

    log_level = getattr(logging, args.log_level)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
    )

    input_path = Path(args.input_file)
    if not input_path.exists():
        logger.error("Input file not found: %s", input_path)
        logger.error("  Hint: generate one with generate_synthetic_lines.py")
        sys.exit(1)

    extra_args = ["--selection", args.selection]
    if args.workers is not None:
        extra_args += ["--workers", str(args.workers)]
    env_overrides: dict[str, str] = {}
    if args.executor != "auto":
        env_overrides["XSHUF_EXECUTOR"] = args.executor

    input_mib = input_path.stat().st_size / (1024 * 1024)
    input_lines = count_lines(input_path)

    logger.info("=" * 80)
    logger.info("Shuffle Benchmark: peak memory vs chunk size")
    logger.info("=" * 80)
    logger.info("Input: %s (%.1f MiB, %d lines)", input_path, input_mib, input_lines)
    logger.info("Chunk sizes: %s | Trials: %d", " ".join(args.chunk_sizes), args.trials)
    logger.info("Executor: %s | Selection: %s", args.executor, args.selection)
    logger.info("Memory sampling: %dms interval (process-tree RSS via psutil)", args.mem_sample_ms)
    logger.info("Python: %s", sys.executable)
    logger.info("")

    all_stats: dict[str, dict] = {}
    for chunk_size in args.chunk_sizes:
        results = []
        for trial in range(1, args.trials + 1):
            r = run_benchmark(
                str(input_path), chunk_size, extra_args, env_overrides, args.mem_sample_ms
            )
            results.append(r)
            logger.info(
                "  %s trial %d/%d: %.2fs, %.0f MiB",
                chunk_size,
                trial,
                args.trials,
                r["seconds"],
                r["peak_rss_tree_mib"],
            )
        all_stats[chunk_size] = compute_stats(results)

    logger.info("")
    logger.info("=" * 80)
    logger.info("RESULTS")
    logger.info("=" * 80)
    logger.info(
        "%s %s %s %s %s %s",
        "Chunk".ljust(10),
        "Median(s)".ljust(11),
        "Min(s)".ljust(9),
        "Max(s)".ljust(9),
        "Median RSS(MiB)".ljust(16),
        "Max RSS(MiB)".ljust(13),
    )
    logger.info("-" * 80)

    mismatched = False
    for chunk_size, stats in all_stats.items():
        logger.info(
            "%s %s %s %s %s %s",
            chunk_size.ljust(10),
            f"{stats['median_time']:.3f}".ljust(11),
            f"{stats['min_time']:.3f}".ljust(9),
            f"{stats['max_time']:.3f}".ljust(9),
            f"{stats['median_rss_tree']:.1f}".ljust(16),
            f"{stats['max_rss_tree']:.1f}".ljust(13),
        )
        if stats["output_lines"] != {input_lines}:
            mismatched = True
            logger.warning(
                "  Output line counts %s differ from input (%d) at chunk size %s",
                sorted(stats["output_lines"]),
                input_lines,
                chunk_size,
            )

    logger.info("-" * 80)
    logger.info("Peak RSS Tree = sum of RSS across parent + all child processes (via psutil)")
    logger.info("=" * 80)

    if mismatched:
        sys.exit(1)


if __name__ == "__main__":
    main()
