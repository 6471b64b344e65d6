from __future__ import annotations

import logging
from typing import Callable, ContextManager

from .errors import EncodeError
from .models import Candidate
from .scaling import fit_within, scale_dimensions

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 12
QUALITY_RESOLUTION = 0.03
LADDER_STEPS = (0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3)

EncodeAt = Callable[[float], bytes]
# prepare(width, height) yields an encoder whose buffer is released on exit
Prepare = Callable[[int, int], ContextManager[EncodeAt]]


def search_quality(
    encode: EncodeAt,
    width: int,
    height: int,
    target_bytes: int,
    min_quality: float,
    max_quality: float,
    tolerance: float,
    max_iterations: int = MAX_ITERATIONS,
) -> Candidate:
    """Bisect the quality bracket for the best encode at or under ``target_bytes``.

    Assumes encoded size grows with quality. An encode within ``tolerance``
    (a fraction of the target) of the target ends the search right away. If
    no quality fits, the floor quality is encoded and returned as is.
    """
    low, high = min_quality, max_quality
    slack = target_bytes * tolerance
    best: Candidate | None = None
    iterations = 0
    while high - low > QUALITY_RESOLUTION and iterations < max_iterations:
        iterations += 1
        quality = (low + high) / 2
        data = encode(quality)
        size = len(data)
        if abs(size - target_bytes) <= slack:
            logger.debug("quality %.3f within tolerance after %d iterations", quality, iterations)
            return Candidate(width, height, quality, data)
        if size <= target_bytes:
            best = Candidate(width, height, quality, data)
            low = quality
        else:
            high = quality
    if best is None:
        logger.debug("no quality fits %d bytes at %dx%d, using floor %.3f", target_bytes, width, height, low)
        best = Candidate(width, height, low, encode(low))
    return best


def escalate(
    prepare: Prepare,
    width: int,
    height: int,
    target_bytes: int,
    min_quality: float,
    max_quality: float,
    tolerance: float,
    low_quality: float,
    floor: int,
    mode: str = "search",
    fallback_dimensions: tuple[int, int] | None = None,
    max_width: int | None = None,
    max_height: int | None = None,
) -> Candidate:
    """Shrink the original ``width`` x ``height`` step by step until the target fits.

    Steps are fitted inside ``max_width`` x ``max_height`` when given and never
    go below ``floor`` pixels on either axis. When the ladder runs out, one
    encode at the smallest tried size and ``low_quality`` is returned even if
    it is still over target.
    """
    smallest: tuple[int, int] | None = None
    for factor in LADDER_STEPS:
        step_width, step_height = scale_dimensions(width, height, factor)
        if max_width and max_height:
            step_width, step_height = fit_within(step_width, step_height, max_width, max_height)
        if step_width < floor or step_height < floor:
            logger.debug("ladder stops at %.1f: %dx%d under %dpx floor", factor, step_width, step_height, floor)
            break
        if (step_width, step_height) == smallest:
            continue
        smallest = (step_width, step_height)
        try:
            with prepare(step_width, step_height) as encode:
                if mode == "probe":
                    candidate = Candidate(step_width, step_height, low_quality, encode(low_quality))
                else:
                    candidate = search_quality(
                        encode, step_width, step_height, target_bytes, min_quality, max_quality, tolerance
                    )
        except EncodeError as exc:
            logger.warning("ladder step %.1f (%dx%d) failed: %s", factor, step_width, step_height, exc)
            continue
        if candidate.size <= target_bytes:
            logger.info("ladder step %.1f fits: %dx%d q=%.3f, %d bytes",
                        factor, step_width, step_height, candidate.quality, candidate.size)
            return candidate
    if smallest is None:
        smallest = fallback_dimensions or (width, height)
    last_width, last_height = smallest
    logger.info("ladder exhausted, last resort %dx%d at q=%.3f", last_width, last_height, low_quality)
    with prepare(last_width, last_height) as encode:
        return Candidate(last_width, last_height, low_quality, encode(low_quality))
