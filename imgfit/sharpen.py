from __future__ import annotations

from PIL import Image, ImageFilter

UNSHARP_KERNEL = ImageFilter.Kernel(
    (3, 3),
    (
        0, -0.25, 0,
        -0.25, 2, -0.25,
        0, -0.25, 0,
    ),
    scale=1,
    offset=0,
)


def sharpen(image: Image.Image) -> Image.Image:
    """Return a sharpened copy of ``image``; alpha passes through untouched."""
    if image.mode in {"RGBA", "LA"}:
        *colors, alpha = image.split()
        color_mode = "RGB" if image.mode == "RGBA" else "L"
        sharpened = _apply_kernel(Image.merge(color_mode, colors))
        return Image.merge(image.mode, (*sharpened.split(), alpha))
    if image.mode not in {"RGB", "L"}:
        image = image.convert("RGB")
    return _apply_kernel(image)


def _apply_kernel(image: Image.Image) -> Image.Image:
    width, height = image.size
    padded = pad_edges(image)
    filtered = padded.filter(UNSHARP_KERNEL)
    return filtered.crop((1, 1, width + 1, height + 1))


def pad_edges(image: Image.Image) -> Image.Image:
    """Add a one pixel border that repeats the outermost rows and columns."""
    width, height = image.size
    padded = Image.new(image.mode, (width + 2, height + 2))
    padded.paste(image, (1, 1))
    padded.paste(image.crop((0, 0, width, 1)), (1, 0))
    padded.paste(image.crop((0, height - 1, width, height)), (1, height + 1))
    padded.paste(padded.crop((1, 0, 2, height + 2)), (0, 0))
    padded.paste(padded.crop((width, 0, width + 1, height + 2)), (width + 1, 0))
    return padded
