"""Exception hierarchy for shuffle runs."""


class ShuffleError(Exception):
    """Base class for failures that abort a shuffle run."""


class InputUnavailableError(ShuffleError):
    """The input file cannot be opened or read."""


class StorageUnavailableError(ShuffleError):
    """A temporary directory, chunk file or output file cannot be written."""


class ChunkReadError(ShuffleError):
    """A chunk file failed while being merged.

    Raised instead of treating the failure as end-of-file, which would drop
    the chunk's remaining lines.
    """
