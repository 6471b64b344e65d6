from __future__ import annotations

import io
import logging
from typing import Callable

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError
from .models import SourceImage
from .sharpen import sharpen as sharpen_image

logger = logging.getLogger(__name__)

PIL_TO_MIME = {
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}
JPEG_BACKGROUND = (255, 255, 255)

Encoder = Callable[[Image.Image, float], bytes]
_ENCODER_REGISTRY: dict[str, Encoder] = {}


def normalize_mime(mime_type: str | None) -> str:
    mime = (mime_type or "").strip().lower()
    if mime == "image/jpg":
        return "image/jpeg"
    return mime


def decode(data: bytes, mime_type: str | None = None) -> SourceImage:
    """Decode ``data`` into an RGB or RGBA image, first frame only."""
    try:
        with Image.open(io.BytesIO(data)) as opened:
            detected = PIL_TO_MIME.get(opened.format or "", "")
            image = ImageOps.exif_transpose(opened)
            image = to_working_mode(image)
            image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        # Pillow reports broken PNG chunks as SyntaxError
        raise DecodeError(f"cannot decode image: {exc}") from exc
    original_format = normalize_mime(mime_type) or detected
    logger.debug("decoded %s image %dx%d (%d bytes)", original_format, image.width, image.height, len(data))
    return SourceImage(image=image, data=data, original_format=original_format)


def to_working_mode(image: Image.Image) -> Image.Image:
    if image.mode in {"RGB", "RGBA"}:
        return image.copy()
    if image.mode in {"LA", "PA"} or (image.mode == "P" and "transparency" in image.info):
        return image.convert("RGBA")
    return image.convert("RGB")


def has_transparency(image: Image.Image) -> bool:
    if image.mode != "RGBA":
        return False
    low, _ = image.getchannel("A").getextrema()
    return low < 255


def resample(image: Image.Image, width: int, height: int) -> Image.Image:
    if (width, height) == image.size:
        return image.copy()
    return image.resize((width, height), Image.Resampling.LANCZOS)


def pillow_quality(quality: float) -> int:
    return max(1, min(100, round(quality * 100)))


def encode_jpeg(image: Image.Image, quality: float) -> bytes:
    if image.mode == "RGBA":
        background = Image.new("RGB", image.size, JPEG_BACKGROUND)
        background.paste(image, mask=image.getchannel("A"))
        image = background
    elif image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=pillow_quality(quality), optimize=True)
    return buffer.getvalue()


def encode_webp(image: Image.Image, quality: float) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", lossless=False, quality=pillow_quality(quality), method=4)
    return buffer.getvalue()


def encode_png(image: Image.Image, quality: float) -> bytes:
    colors = max(16, int(256 * quality))
    buffer = io.BytesIO()
    quantize_image(image, min(256, colors)).save(buffer, format="PNG", optimize=True, compress_level=9)
    return buffer.getvalue()


def quantize_image(image: Image.Image, colors: int) -> Image.Image:
    fast_octree = 2
    median_cut = 0
    if image.mode in {"RGBA", "LA"}:
        return image.convert("RGBA").quantize(colors=colors, method=fast_octree)
    return image.convert("RGB").quantize(colors=colors, method=median_cut)


def encode_image(image: Image.Image, output_format: str, quality: float) -> bytes:
    encoder = get_encoder_registry().get(output_format)
    if encoder is None:
        raise EncodeError(f"no encoder for {output_format}")
    try:
        return encoder(image, quality)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"{output_format} encode failed at quality {quality:.3f}: {exc}") from exc


class WorkingImage:
    """A resampled buffer that encodes at any quality until it is closed."""

    def __init__(self, image: Image.Image, output_format: str) -> None:
        self.image = image
        self.output_format = output_format

    def __call__(self, quality: float) -> bytes:
        data = encode_image(self.image, self.output_format, quality)
        logger.debug("encoded %dx%d q=%.3f -> %d bytes", self.image.width, self.image.height, quality, len(data))
        return data

    def close(self) -> None:
        self.image.close()

    def __enter__(self) -> WorkingImage:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def prepare(
    source: SourceImage,
    width: int,
    height: int,
    output_format: str,
    sharpen: bool = False,
) -> WorkingImage:
    """Resample ``source`` once and return an encoder bound to that buffer.

    Sharpening runs here, once per working buffer, so search iterations only
    pay for the encode. The caller closes the returned buffer.
    """
    working = resample(source.image, width, height)
    if sharpen:
        sharpened = sharpen_image(working)
        working.close()
        working = sharpened
        logger.debug("sharpened working buffer %dx%d", width, height)
    return WorkingImage(working, output_format)


def get_encoder_registry() -> dict[str, Encoder]:
    global _ENCODER_REGISTRY
    if not _ENCODER_REGISTRY:
        _ENCODER_REGISTRY = {
            "image/jpeg": encode_jpeg,
            "image/webp": encode_webp,
            "image/png": encode_png,
        }
    return _ENCODER_REGISTRY
