"""Command-line interface for external shuffle."""

import argparse
import logging
import sys

from external_shuffle.chunk import BUFFER_SIZE, DEFAULT_CHUNK_SIZE, MAX_OPEN_HANDLES
from external_shuffle.errors import ShuffleError
from external_shuffle.merge import SelectionPolicy
from external_shuffle.pipeline import main_shuffle

logger = logging.getLogger(__name__)

_SIZE_SUFFIXES = {"K": 1024, "M": 1024**2, "G": 1024**3}


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging to write to stderr."""
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def parse_size(value: str) -> int:
    """Parse a byte count such as 4096, 64K, 512M or 2G."""
    text = value.strip().upper().removesuffix("B")
    multiplier = 1
    if text and text[-1] in _SIZE_SUFFIXES:
        multiplier = _SIZE_SUFFIXES[text[-1]]
        text = text[:-1]
    try:
        size = int(text) * multiplier
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid size: {value!r}") from None
    if size < 1:
        raise argparse.ArgumentTypeError(f"size must be positive: {value!r}")
    return size


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="external-shuffle",
        description="Randomly shuffle the lines of a file too large for memory.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the newline-delimited input file",
    )

    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output path (default: shuffled_<input name> in the current directory)",
    )

    parser.add_argument(
        "--chunk-size",
        type=parse_size,
        default=DEFAULT_CHUNK_SIZE,
        help="Bytes of lines shuffled in memory per chunk, K/M/G suffixes allowed (default: 512M)",
    )

    parser.add_argument(
        "--buffer-size",
        type=parse_size,
        default=BUFFER_SIZE,
        help="I/O buffer capacity, K/M/G suffixes allowed (default: 8M)",
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for a reproducible order (default: system entropy)",
    )

    parser.add_argument(
        "--tmp-dir",
        default=None,
        help="Parent directory for temporary chunk files (default: system temp dir)",
    )

    parser.add_argument(
        "--selection",
        choices=[policy.value for policy in SelectionPolicy],
        default=SelectionPolicy.CHUNK.value,
        help="Merge draw: 'chunk' picks uniformly among active chunks, "
        "'line' weights by remaining lines for an exactly uniform order (default: chunk)",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Shuffle chunks on a pool of this many workers (default: serial)",
    )

    parser.add_argument(
        "--max-open-handles",
        type=int,
        default=MAX_OPEN_HANDLES,
        help=f"Maximum chunk files open during merge (default: {MAX_OPEN_HANDLES})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging based on --log-level
    log_level = getattr(logging, args.log_level)
    configure_logging(log_level)

    if args.workers is not None and args.workers < 1:
        parser.error(f"--workers must be a positive integer, got {args.workers}")
    if args.max_open_handles < 1:
        parser.error(f"--max-open-handles must be a positive integer, got {args.max_open_handles}")

    try:
        main_shuffle(
            input_path=args.input_file,
            output_path=args.output,
            chunk_size=args.chunk_size,
            buffer_size=args.buffer_size,
            seed=args.seed,
            tmp_dir=args.tmp_dir,
            policy=args.selection,
            workers=args.workers,
            max_open_handles=args.max_open_handles,
        )
    except ShuffleError as exc:
        logger.error("Shuffle failed: %s", exc)
        return 1
    except ValueError as exc:
        parser.error(str(exc))

    return 0


if __name__ == "__main__":
    sys.exit(main())
