"""External Shuffle - Randomly permute the lines of files larger than memory."""

from external_shuffle.errors import (
    ChunkReadError,
    InputUnavailableError,
    ShuffleError,
    StorageUnavailableError,
)
from external_shuffle.merge import SelectionPolicy
from external_shuffle.pipeline import ShuffleResult, main_shuffle, shuffle_file

__all__ = [
    "ChunkReadError",
    "InputUnavailableError",
    "SelectionPolicy",
    "ShuffleError",
    "ShuffleResult",
    "StorageUnavailableError",
    "main_shuffle",
    "shuffle_file",
]
