from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from . import codec
from .errors import CompressionError, EncodeError, ReadError
from .files import load_item
from .models import (
    AUTO_FORMAT,
    ORIGINAL_QUALITY,
    BatchItem,
    Candidate,
    CompressionOptions,
    CompressionResult,
    ItemResult,
    SourceImage,
)
from .scaling import calculate_dimensions, is_significant_downscale
from .search import escalate, search_quality

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, int, int], None]


def compress_many(
    items: Sequence[BatchItem],
    options: CompressionOptions,
    progress: ProgressCallback | None = None,
) -> list[ItemResult]:
    return _collect(iter_compress(items, options), len(items), progress)


def compress_files(
    paths: Sequence[Path],
    options: CompressionOptions,
    progress: ProgressCallback | None = None,
) -> list[ItemResult]:
    """Like ``compress_many``, but each file is only read when its turn comes."""
    return _collect(iter_compress_files(paths, options), len(paths), progress)


def _collect(results: Iterator[ItemResult], total: int, progress: ProgressCallback | None) -> list[ItemResult]:
    collected = []
    for index, item_result in enumerate(results, start=1):
        collected.append(item_result)
        if progress is not None:
            progress(index * 100 / total, index, total)
    return collected


def iter_compress(items: Iterable[BatchItem], options: CompressionOptions) -> Iterator[ItemResult]:
    """Compress items one by one; a failing item never stops the rest."""
    for item in items:
        yield compress_item(item, options)


def iter_compress_files(paths: Iterable[Path], options: CompressionOptions) -> Iterator[ItemResult]:
    for path in paths:
        try:
            item = load_item(path)
        except OSError as exc:
            logger.warning("%s could not be read: %s", path.name, exc)
            yield ItemResult(path.name, error=ReadError(f"cannot read {path}: {exc}"))
            continue
        yield compress_item(item, options)


def compress_item(item: BatchItem, options: CompressionOptions) -> ItemResult:
    try:
        result = compress(item.data, item.mime_type, options)
    except CompressionError as exc:
        logger.warning("%s failed: %s", item.name, exc)
        return ItemResult(item.name, error=exc)
    return ItemResult(item.name, result=result)


def compress(data: bytes, mime_type: str | None, options: CompressionOptions) -> CompressionResult:
    with codec.decode(data, mime_type) as source:
        return _compress_source(source, options)


def _compress_source(source: SourceImage, options: CompressionOptions) -> CompressionResult:
    original_kb = source.original_size / 1024
    if original_kb <= options.target_size_kb:
        logger.info("%.1f KB already within %.1f KB target, keeping original", original_kb, options.target_size_kb)
        return build_original_result(source, options)
    output_format = select_format(source, options.output_format)
    width, height = calculate_dimensions(
        source.width,
        source.height,
        original_kb,
        options.target_size_kb,
        options.max_width,
        options.max_height,
        options.min_dimension,
    )
    logger.info(
        "compressing %dx%d %.1f KB -> %s at %dx%d, target %.1f KB",
        source.width, source.height, original_kb, output_format, width, height, options.target_size_kb,
    )
    target_bytes = options.target_bytes

    def prepare(step_width: int, step_height: int) -> codec.WorkingImage:
        sharpen = options.sharpen and is_significant_downscale(source.width, step_width)
        return codec.prepare(source, step_width, step_height, output_format, sharpen=sharpen)

    candidate: Candidate | None = None
    try:
        with prepare(width, height) as encode:
            candidate = search_quality(
                encode,
                width,
                height,
                target_bytes,
                options.min_quality,
                options.max_quality,
                options.quality_tolerance,
            )
    except EncodeError as exc:
        logger.warning("primary search at %dx%d failed: %s", width, height, exc)
    if candidate is None or candidate.size > target_bytes:
        candidate = escalate(
            prepare,
            source.width,
            source.height,
            target_bytes,
            options.min_quality,
            options.max_quality,
            options.quality_tolerance,
            options.low_quality,
            options.ladder_floor,
            mode=options.ladder_mode,
            fallback_dimensions=(width, height),
            max_width=options.max_width,
            max_height=options.max_height,
        )
    if candidate.size >= source.original_size:
        logger.info(
            "candidate %d bytes is not smaller than original %d bytes, keeping original",
            candidate.size, source.original_size,
        )
        return build_original_result(source, options)
    if candidate.size > target_bytes:
        logger.warning("target %.1f KB not reached, best effort %.1f KB", options.target_size_kb, candidate.size / 1024)
    return build_result(source, candidate, output_format, options)


def select_format(source: SourceImage, policy: str) -> str:
    if policy != AUTO_FORMAT:
        return policy
    original = source.original_format
    if original == "image/png":
        return "image/webp" if codec.has_transparency(source.image) else "image/jpeg"
    if original in {"image/jpeg", "image/webp"}:
        return original
    return "image/jpeg"


def compression_ratio(original_size: int, compressed_size: int) -> float:
    if not original_size:
        return 0.0
    return round((1 - compressed_size / original_size) * 100, 2)


def build_result(
    source: SourceImage,
    candidate: Candidate,
    output_format: str,
    options: CompressionOptions,
) -> CompressionResult:
    return CompressionResult(
        data=candidate.data,
        final_width=candidate.width,
        final_height=candidate.height,
        quality_used=candidate.quality,
        output_format=output_format,
        original_size_kb=source.original_size / 1024,
        compressed_size_kb=candidate.size / 1024,
        compression_ratio=compression_ratio(source.original_size, candidate.size),
        original_width=source.width,
        original_height=source.height,
        target_size_kb=options.target_size_kb,
    )


def build_original_result(source: SourceImage, options: CompressionOptions) -> CompressionResult:
    size_kb = source.original_size / 1024
    return CompressionResult(
        data=source.data,
        final_width=source.width,
        final_height=source.height,
        quality_used=ORIGINAL_QUALITY,
        output_format=source.original_format,
        original_size_kb=size_kb,
        compressed_size_kb=size_kb,
        compression_ratio=0.0,
        original_width=source.width,
        original_height=source.height,
        target_size_kb=options.target_size_kb,
    )
