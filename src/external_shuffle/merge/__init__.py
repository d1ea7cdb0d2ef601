"""Merge pass: interleave shuffled chunks into one output file."""

from external_shuffle.merge.cache import LRUHandleCache
from external_shuffle.merge.cursor import ChunkCursor
from external_shuffle.merge.merge import MergeStats, merge_chunks
from external_shuffle.merge.selection import (
    SelectionPolicy,
    get_selector,
    pick_uniform,
    pick_weighted,
)

__all__ = [
    "ChunkCursor",
    "LRUHandleCache",
    "MergeStats",
    "SelectionPolicy",
    "get_selector",
    "merge_chunks",
    "pick_uniform",
    "pick_weighted",
]
