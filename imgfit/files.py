from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Iterable

from .models import BatchItem

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tif", ".tiff"}
FORMAT_SUFFIXES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}
SUFFIX_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


def iter_image_files(root: Path, suffixes: Iterable[str] = IMAGE_SUFFIXES) -> list[Path]:
    patterns = {suffix.lower() for suffix in suffixes}
    files = []
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.suffix.lower() in patterns:
            files.append(path)
    return files


def collect_files(paths: Iterable[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(iter_image_files(path))
        elif path.is_file() and path.suffix.lower() in IMAGE_SUFFIXES:
            files.append(path)
    return list(dict.fromkeys(files))


def guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in SUFFIX_MIME_TYPES:
        return SUFFIX_MIME_TYPES[suffix]
    mime, _ = mimetypes.guess_type(path.name)
    return mime or ""


def load_item(path: Path) -> BatchItem:
    return BatchItem(path.read_bytes(), guess_mime_type(path), path.name)


def build_output_path(source: Path, output_dir: Path, output_format: str, input_dir: Path | None = None) -> Path:
    suffix = FORMAT_SUFFIXES.get(output_format, source.suffix)
    if suffix == ".jpg" and source.suffix.lower() in {".jpg", ".jpeg"}:
        suffix = source.suffix
    if input_dir is not None and source.is_relative_to(input_dir):
        candidate = output_dir / source.relative_to(input_dir).with_suffix(suffix)
    else:
        candidate = output_dir / f"{source.stem}{suffix}"
    return ensure_unique_path(candidate, candidate.stem, suffix)


def ensure_unique_path(path: Path, source_stem: str, source_suffix: str) -> Path:
    if not path.exists():
        return path
    parent = path.parent
    index = 1
    while True:
        candidate = parent / f"{source_stem}({index}){source_suffix}"
        if not candidate.exists():
            return candidate
        index += 1


def write_output(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
