"""Command-line entry point for the watermark replacement batch."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .batch_runner import run_batch
from .config import VARIANTS, settings_for_variant
from .ffmpeg_tools import ToolNotFoundError
from .report_store import format_summary

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Replace burned-in source watermarks with a brand mark, for a folder of videos.",
    )
    parser.add_argument("input_dir", type=Path, help="Folder with .mp4/.mov files.")
    parser.add_argument(
        "limit",
        nargs="?",
        type=int,
        default=None,
        help="Maximum number of un-processed files to handle in this run.",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Output folder (default: <input_dir>-<variant>).",
    )
    parser.add_argument(
        "--variant",
        choices=sorted(VARIANTS),
        default="enhanced-ai",
        help="Preset controlling output naming and detection constants.",
    )
    parser.add_argument("--brand-text", default=None, help="Replacement mark text.")
    parser.add_argument("--font-file", type=Path, default=None, help="TTF used for the brand mark.")
    parser.add_argument("--threshold", type=float, default=None, help="Detection threshold in [0, 1].")
    parser.add_argument("--item-delay", type=float, default=None, help="Pause between assets (sec).")
    parser.add_argument("--batch-delay", type=float, default=None, help="Pause between batches (sec).")
    parser.add_argument("--batch-size", type=int, default=None, help="Assets per batch.")
    parser.add_argument("--scratch-dir", type=Path, default=None, help="Root for temporary frames.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict:
    mapping = {
        "brand_text": args.brand_text,
        "font_file": args.font_file,
        "detection_threshold": args.threshold,
        "item_delay_sec": args.item_delay,
        "batch_delay_sec": args.batch_delay,
        "batch_size": args.batch_size,
        "scratch_root": args.scratch_dir,
    }
    return {k: v for k, v in mapping.items() if v is not None}


def main(argv: list[str] | None = None) -> int:
    """Entry point used by the `markswap` console script."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    try:
        settings = settings_for_variant(args.variant, **_overrides(args))
    except (KeyError, ValueError) as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    input_dir: Path = args.input_dir
    output_dir: Path = args.output_dir or input_dir.with_name(f"{input_dir.name}-{settings.variant}")

    try:
        run = run_batch(input_dir, output_dir, settings, limit=args.limit)
    except (ToolNotFoundError, FileNotFoundError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2

    print()
    print("\n".join(format_summary(run)))
    return 0 if run.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
