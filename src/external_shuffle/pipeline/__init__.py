from external_shuffle.pipeline.shuffle import (
    ShuffleResult,
    default_output_path,
    main_shuffle,
    shuffle_file,
)
from external_shuffle.pipeline.workspace import chunk_workspace

__all__ = [
    "ShuffleResult",
    "chunk_workspace",
    "default_output_path",
    "main_shuffle",
    "shuffle_file",
]
