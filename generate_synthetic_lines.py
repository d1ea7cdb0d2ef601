#!/usr/bin/env python3
"""
Synthetic dataset generator for shuffle benchmarks.

Generates a large newline-delimited file of numbered, fixed-width lines. Every
line is distinct and carries its original position, so a shuffled copy can be
checked for lost or duplicated lines and eyeballed for residual ordering.
"""

import argparse
import random
import sys

# Large buffer for efficient streaming writes
BUFFER_SIZE = 1024 * 1024  # 1MB

_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


def format_line(index: int, width: int, rng: random.Random | None) -> str:
    """
    Build one line of exactly `width` bytes including the newline.

    The line starts with a zero-padded index; the rest is padding, random
    when rng is given and '.' otherwise.
    """
    prefix = f"{index:012d}|"
    pad_len = width - len(prefix) - 1
    if rng is None:
        padding = "." * pad_len
    else:
        padding = "".join(rng.choices(_ALPHABET, k=pad_len))
    return f"{prefix}{padding}\n"


def generate_synthetic_dataset(
    output_path: str,
    num_lines: int,
    width: int,
    random_padding: bool,
    seed: int,
) -> int:
    """
    Generate a synthetic dataset of numbered lines.

    Streams output line-by-line to avoid memory issues.

    Returns:
        Total number of bytes written.
    """
    rng = random.Random(seed) if random_padding else None
    total_bytes = 0

    with open(output_path, "w", encoding="ascii", buffering=BUFFER_SIZE) as f:
        for i in range(num_lines):
            line = format_line(i, width, rng)
            f.write(line)
            total_bytes += len(line)

            # Progress indicator every 1M lines
            if (i + 1) % 1_000_000 == 0:
                print(f"  Generated {i + 1:,}/{num_lines:,} lines...", file=sys.stderr)

    return total_bytes


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic line file for shuffle benchmarks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # ~1 GiB of 100-byte lines
  python generate_synthetic_lines.py --out data/synthetic.txt --lines 10737418

  # Random padding (defeats filesystem compression)
  python generate_synthetic_lines.py --out data/synthetic_random.txt --random-padding
""",
    )

    parser.add_argument(
        "--out",
        required=True,
        help="Output file path",
    )
    parser.add_argument(
        "--lines",
        type=int,
        default=10_000_000,
        help="Number of lines (default: 10000000)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=100,
        help="Bytes per line including the newline (default: 100)",
    )
    parser.add_argument(
        "--random-padding",
        action="store_true",
        help="Fill lines with random characters instead of '.'",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=1,
        help="Random seed for padding (default: 1)",
    )

    args = parser.parse_args()

    # Validate
    if args.lines < 0:
        parser.error("--lines must not be negative")
    if args.width < 14:
        parser.error("--width must be at least 14 (index prefix plus newline)")

    approx_size_mb = (args.lines * args.width) / (1024 * 1024)

    print("=" * 60, file=sys.stderr)
    print("Synthetic Line Dataset Generator", file=sys.stderr)
    print("=" * 60, file=sys.stderr)
    print(f"Output: {args.out}", file=sys.stderr)
    print(f"Lines: {args.lines:,}", file=sys.stderr)
    print(f"Width: {args.width}", file=sys.stderr)
    print(f"Estimated size: ~{approx_size_mb:.1f} MB", file=sys.stderr)
    print("=" * 60, file=sys.stderr)

    total_bytes = generate_synthetic_dataset(
        output_path=args.out,
        num_lines=args.lines,
        width=args.width,
        random_padding=args.random_padding,
        seed=args.seed,
    )

    print(f"Done! Wrote {args.lines:,} lines ({total_bytes:,} bytes) to {args.out}", file=sys.stderr)


if __name__ == "__main__":
    main()
