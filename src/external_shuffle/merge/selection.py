"""Policies for choosing which cursor emits the next line."""

import random
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import TypeAlias

from external_shuffle.errors import ChunkReadError
from external_shuffle.merge.cursor import ChunkCursor

Selector: TypeAlias = Callable[[Sequence[ChunkCursor], random.Random, int], int]


class SelectionPolicy(StrEnum):
    """How the merger draws the next source chunk."""

    # Uniform over non-exhausted chunks. Slightly biased: chunks that run
    # dry stop competing, so lines of longer chunks cluster near the end.
    CHUNK = "chunk"
    # Weighted by remaining lines; yields an exactly uniform permutation.
    LINE = "line"


def pick_uniform(active: Sequence[ChunkCursor], rng: random.Random, total_remaining: int) -> int:
    """Return the position of a cursor drawn uniformly from active."""
    return rng.randrange(len(active))


def pick_weighted(active: Sequence[ChunkCursor], rng: random.Random, total_remaining: int) -> int:
    """
    Return the position of a cursor drawn with probability proportional to
    its remaining line count.

    Equivalent to drawing the next line uniformly from the union of all
    lines not yet emitted. total_remaining is the sum of the cursors'
    remaining counts, kept by the caller.
    """
    if total_remaining > 0:
        target = rng.randrange(total_remaining)
        for position, cursor in enumerate(active):
            target -= cursor.remaining
            if target < 0:
                return position
    # Only reachable when recorded line counts disagree with the chunk files.
    raise ChunkReadError(
        f"Remaining line counts disagree with chunk contents (total {total_remaining})"
    )


_SELECTORS: dict[SelectionPolicy, Selector] = {
    SelectionPolicy.CHUNK: pick_uniform,
    SelectionPolicy.LINE: pick_weighted,
}


def get_selector(policy: SelectionPolicy | str) -> Selector:
    """Look up the draw function for a policy name."""
    return _SELECTORS[SelectionPolicy(policy)]
