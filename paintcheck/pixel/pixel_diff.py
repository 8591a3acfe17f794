"""
Pixel comparison of two screenshots.

Colour distance is measured in YIQ space (luma weighted heaviest), the
same perceptual metric pixelmatch uses, so threshold values carry over:
0 means exact, 0.1 is the usual tolerance.
"""

import io
import logging
from typing import Tuple

import numpy as np
from PIL import Image

from paintcheck.shared.schemas import PixelComparison

logger = logging.getLogger(__name__)

# 35215 is the maximum possible YIQ delta between two colours
MAX_YIQ_DELTA = 35215

DIFF_COLOR = (255, 0, 0)
AA_COLOR = (255, 255, 0)
FADE_ALPHA = 0.1


def _blend(channel, alpha):
    # composite over white
    return 255 + (channel - 255) * alpha


def _rgb2y(r, g, b):
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _rgb2i(r, g, b):
    return r * 0.59597799 - g * 0.27417610 - b * 0.32180189


def _rgb2q(r, g, b):
    return r * 0.21147017 - g * 0.52261711 + b * 0.31114694


def _yiq(pixels: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    rgba = pixels.astype(np.float64)
    alpha = rgba[..., 3] / 255.0
    r = _blend(rgba[..., 0], alpha)
    g = _blend(rgba[..., 1], alpha)
    b = _blend(rgba[..., 2], alpha)
    return _rgb2y(r, g, b), _rgb2i(r, g, b), _rgb2q(r, g, b)


def color_delta(base: np.ndarray, actual: np.ndarray) -> np.ndarray:
    """
    Signed per-pixel YIQ distance between two RGBA arrays. Negative where
    the actual pixel is lighter than the baseline one; zero where the
    pixels are identical.
    """
    y1, i1, q1 = _yiq(base)
    y2, i2, q2 = _yiq(actual)
    y, i, q = y1 - y2, i1 - i2, q1 - q2
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    delta = np.where(y1 > y2, -delta, delta)
    delta[np.all(base == actual, axis=-1)] = 0
    return delta


def _window(x: int, y: int, width: int, height: int):
    return max(x - 1, 0), max(y - 1, 0), min(x + 1, width - 1), min(y + 1, height - 1)


def _has_many_siblings(pixels: np.ndarray, x1: int, y1: int) -> bool:
    height, width = pixels.shape[:2]
    x0, y0, x2, y2 = _window(x1, y1, width, height)
    zeroes = 1 if x1 in (x0, x2) or y1 in (y0, y2) else 0
    center = pixels[y1, x1]
    for x in range(x0, x2 + 1):
        for y in range(y0, y2 + 1):
            if x == x1 and y == y1:
                continue
            if np.array_equal(center, pixels[y, x]):
                zeroes += 1
                if zeroes > 2:
                    return True
    return False


def _antialiased(pixels: np.ndarray, luma: np.ndarray, x1: int, y1: int, other: np.ndarray) -> bool:
    """Whether the pixel sits on a gradient edge with flat regions on both sides."""
    height, width = pixels.shape[:2]
    x0, y0, x2, y2 = _window(x1, y1, width, height)
    zeroes = 1 if x1 in (x0, x2) or y1 in (y0, y2) else 0
    lo = hi = 0.0
    lo_xy = hi_xy = None
    center = pixels[y1, x1]
    for x in range(x0, x2 + 1):
        for y in range(y0, y2 + 1):
            if x == x1 and y == y1:
                continue
            if np.array_equal(center, pixels[y, x]):
                delta = 0.0
            else:
                delta = luma[y1, x1] - luma[y, x]
            if delta == 0:
                zeroes += 1
                if zeroes > 2:
                    return False
            elif delta < lo:
                lo, lo_xy = delta, (x, y)
            elif delta > hi:
                hi, hi_xy = delta, (x, y)

    if lo == 0 or hi == 0:
        return False
    return (
        (_has_many_siblings(pixels, *lo_xy) and _has_many_siblings(other, *lo_xy))
        or (_has_many_siblings(pixels, *hi_xy) and _has_many_siblings(other, *hi_xy))
    )


def _faded(pixels: np.ndarray) -> np.ndarray:
    rgba = pixels.astype(np.float64)
    luma = _rgb2y(rgba[..., 0], rgba[..., 1], rgba[..., 2])
    gray = _blend(luma, FADE_ALPHA * rgba[..., 3] / 255.0)
    out = np.empty(pixels.shape, dtype=np.uint8)
    out[..., :3] = np.clip(gray, 0, 255)[..., None].astype(np.uint8)
    out[..., 3] = 255
    return out


def match_dimensions(baseline: Image.Image, actual: Image.Image) -> Tuple[Image.Image, bool]:
    """Resamples `actual` to the baseline size when they differ."""
    if baseline.size == actual.size:
        return actual, False
    logger.debug(f"Images have different sizes ({actual.size} vs {baseline.size}), resizing")
    return actual.resize(baseline.size, Image.LANCZOS), True


def compare_images(baseline: Image.Image, actual: Image.Image, threshold: float = 0.1,
                   include_aa: bool = True) -> PixelComparison:
    actual, resized = match_dimensions(baseline, actual)
    base_px = np.asarray(baseline.convert("RGBA"))
    actual_px = np.asarray(actual.convert("RGBA"))
    height, width = base_px.shape[:2]

    delta = color_delta(base_px, actual_px)
    over = np.abs(delta) > MAX_YIQ_DELTA * threshold * threshold

    output = _faded(base_px)
    aa_mask = np.zeros(over.shape, dtype=bool)
    if not include_aa and over.any():
        base_luma = _yiq(base_px)[0]
        actual_luma = _yiq(actual_px)[0]
        for y, x in np.argwhere(over):
            if (_antialiased(base_px, base_luma, x, y, actual_px)
                    or _antialiased(actual_px, actual_luma, x, y, base_px)):
                aa_mask[y, x] = True

    mismatched = over & ~aa_mask
    output[aa_mask] = (*AA_COLOR, 255)
    output[mismatched] = (*DIFF_COLOR, 255)

    mismatched_pixels = int(mismatched.sum())
    total_pixels = width * height
    diff_percentage = round(mismatched_pixels / total_pixels * 100, 2) if total_pixels else 0.0

    return PixelComparison(
        match=mismatched_pixels == 0,
        mismatched_pixels=mismatched_pixels,
        total_pixels=total_pixels,
        diff_percentage=diff_percentage,
        resized=resized,
        diff_image=Image.fromarray(output),
    )


def compare_png(baseline_png: bytes, actual_png: bytes, threshold: float = 0.1,
                include_aa: bool = True) -> PixelComparison:
    baseline = Image.open(io.BytesIO(baseline_png))
    actual = Image.open(io.BytesIO(actual_png))
    return compare_images(baseline, actual, threshold=threshold, include_aa=include_aa)


def to_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
