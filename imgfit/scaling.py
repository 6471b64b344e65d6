from __future__ import annotations

import math

EARLY_EXIT_FACTOR = 1.3
SAFETY_MARGIN = 0.9


def calculate_dimensions(
    width: int,
    height: int,
    original_kb: float,
    target_kb: float,
    max_width: int,
    max_height: int,
    min_dimension: int,
) -> tuple[int, int]:
    """Pick working dimensions expected to land near ``target_kb``.

    Encoded size shrinks roughly with pixel area, so the linear scale is the
    square root of the size ratio, tightened by a safety margin. The aspect
    ratio is kept through every clamp, and the max bounds win over the
    ``min_dimension`` floor.
    """
    if original_kb <= target_kb * EARLY_EXIT_FACTOR:
        return fit_within(width, height, max_width, max_height)
    scale = math.sqrt(target_kb / original_kb) * SAFETY_MARGIN
    new_width = width * scale
    new_height = height * scale
    shorter = min(new_width, new_height)
    if shorter < min_dimension:
        # grow back to the floor on the shorter axis, but never upscale
        grow = min(min_dimension / shorter, width / new_width, height / new_height)
        new_width *= grow
        new_height *= grow
    return fit_within(new_width, new_height, max_width, max_height)


def fit_within(width: float, height: float, max_width: int, max_height: int) -> tuple[int, int]:
    """Shrink ``width`` x ``height`` to fit the bounds, keeping the aspect ratio."""
    bound = min(1.0, max_width / width, max_height / height)
    return max(1, round(width * bound)), max(1, round(height * bound))


def scale_dimensions(width: int, height: int, factor: float) -> tuple[int, int]:
    return max(1, round(width * factor)), max(1, round(height * factor))


def is_significant_downscale(original_width: int, width: int, threshold: float = 0.8) -> bool:
    return width < original_width * threshold
