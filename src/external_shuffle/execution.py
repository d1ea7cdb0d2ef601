"""Execution policy and executor selection utilities."""

import os
import sys
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from typing import TypeAlias

ExecutorClass: TypeAlias = type[ThreadPoolExecutor] | type[ProcessPoolExecutor] | None

# Environment variable to override executor selection.
XSHUF_EXECUTOR_ENV = "XSHUF_EXECUTOR"


def is_gil_enabled() -> bool:
    """Check if GIL is enabled."""
    try:
        return sys._is_gil_enabled()
    except AttributeError:
        return True


def get_executor_class(workers: int | None = None) -> ExecutorClass:
    """
    Select the executor used to shuffle chunks.

    Priority:
    1. XSHUF_EXECUTOR env var override ("threads", "processes", or "serial")
    2. Serial when no pool was requested (workers is None or 1)
    3. Auto-select based on GIL status (disabled -> threads, enabled -> processes)

    Serial mode keeps a single chunk resident in memory at a time.
    """
    executor_override = os.environ.get(XSHUF_EXECUTOR_ENV, "").lower()

    if executor_override == "threads":
        return ThreadPoolExecutor
    if executor_override == "processes":
        return ProcessPoolExecutor
    if executor_override == "serial":
        return None

    if workers is None or workers <= 1:
        return None
    if is_gil_enabled():
        return ProcessPoolExecutor
    return ThreadPoolExecutor


def describe_executor(executor_class: ExecutorClass) -> str:
    """Convert an executor class into a readable policy name."""
    if executor_class is None:
        return "serial"
    if executor_class is ThreadPoolExecutor:
        return "threads"
    return "processes"


def resolve_chunk_pool(workers: int | None = None) -> tuple[ExecutorClass, int | None]:
    """
    Decide how chunks are shuffled: executor class plus pool size.

    A pool forced through XSHUF_EXECUTOR without an explicit size gets one
    worker per CPU. Every in-flight chunk is resident, so the pool size is
    also the number of chunks held in memory besides the one being read.
    """
    executor_class = get_executor_class(workers)
    if executor_class is None:
        return None, None
    if workers is None:
        workers = os.cpu_count() or 1
    return executor_class, workers
