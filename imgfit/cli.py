from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .compress import compress_files
from .errors import ConfigError
from .files import build_output_path, collect_files, write_output
from .models import AUTO_FORMAT, CompressionOptions

FORMAT_CHOICES = {
    "auto": AUTO_FORMAT,
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "png": "image/png",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgfit",
        description="Re-encode images so each one fits under a target size.",
    )
    parser.add_argument("paths", nargs="+", type=Path, help="Image files or folders")
    parser.add_argument("-o", "--output-dir", type=Path, required=True, help="Where compressed files go")
    parser.add_argument("-t", "--target-kb", type=float, default=50, help="Target size in KB (default 50)")
    parser.add_argument("--max-width", type=int, default=4096)
    parser.add_argument("--max-height", type=int, default=4096)
    parser.add_argument("--min-quality", type=float, default=0.1)
    parser.add_argument("--max-quality", type=float, default=0.92)
    parser.add_argument("--tolerance", type=float, default=0.1, help="Accepted distance to target, as a fraction")
    parser.add_argument("--format", choices=sorted(FORMAT_CHOICES), default="auto")
    parser.add_argument(
        "--ladder",
        choices=["search", "probe"],
        default="search",
        help="Full quality search or a single probe per downscale step",
    )
    parser.add_argument("--no-sharpen", action="store_true", help="Skip sharpening after strong downscales")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def options_from_args(args: argparse.Namespace) -> CompressionOptions:
    return CompressionOptions(
        target_size_kb=args.target_kb,
        max_width=args.max_width,
        max_height=args.max_height,
        min_quality=args.min_quality,
        max_quality=args.max_quality,
        quality_tolerance=args.tolerance,
        output_format=FORMAT_CHOICES[args.format],
        sharpen=not args.no_sharpen,
        ladder_mode=args.ladder,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        options = options_from_args(args)
    except ConfigError as exc:
        parser.error(str(exc))
    files = collect_files(args.paths)
    if not files:
        print("no images found", file=sys.stderr)
        return 1
    input_dir = common_input_dir(files)

    def on_progress(percent: float, completed: int, total: int) -> None:
        print(f"[{completed}/{total}] {percent:.0f}%", file=sys.stderr)

    results = compress_files(files, options, progress=on_progress)
    failed = 0
    total_before = 0.0
    total_after = 0.0
    for path, item in zip(files, results):
        if not item.success:
            failed += 1
            print(f"{path.name}: failed: {item.message}")
            continue
        result = item.result
        output = build_output_path(path.resolve(), args.output_dir, result.output_format, input_dir)
        write_output(output, result.data)
        total_before += result.original_size_kb
        total_after += result.compressed_size_kb
        note = "" if result.target_met else " (over target)"
        print(
            f"{path.name}: {result.original_size_kb:.1f} KB -> {result.compressed_size_kb:.1f} KB, "
            f"saved {result.compression_ratio:.2f}%, quality {format_quality(result.quality_used)}{note} -> {output}"
        )
    saved = (1 - total_after / total_before) if total_before else 0
    print(f"done: {len(results) - failed} ok, {failed} failed, saved {saved:.1%}")
    return 1 if failed else 0


def common_input_dir(files: list[Path]) -> Path:
    common = Path(os.path.commonpath([str(path.resolve()) for path in files]))
    if common.is_file():
        return common.parent
    return common


def format_quality(quality: float | str) -> str:
    if isinstance(quality, str):
        return quality
    return f"{quality:.2f}"


if __name__ == "__main__":
    raise SystemExit(main())
