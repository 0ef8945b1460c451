# cardstudio/domain/geometry.py
"""Coordinate conversion between template fractions and raster pixels.

Every position in the editor is stored as a fraction of the template's
native width or height. Preview rendering, export rendering and drag
handling all convert through the functions below so that a layer at
fraction (fx, fy) lands on pixel (fx * W, fy * H) at any raster size.
"""
from typing import NamedTuple


class Size(NamedTuple):
    width: int
    height: int


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_pixel_space(fraction: float, axis_length: float) -> float:
    return fraction * axis_length


def to_fraction_space(pixel: float, axis_length: float) -> float:
    if axis_length <= 0:
        return 0.0
    return clamp(pixel / axis_length, 0.0, 1.0)


def delta_to_fraction(delta_pixel: float, axis_length: float) -> float:
    # unclamped: a drag delta may be negative
    if axis_length <= 0:
        return 0.0
    return delta_pixel / axis_length


def preview_box(native_w: int, native_h: int, max_w: int, max_h: int) -> Size:
    """Fit the native size inside (max_w, max_h) without upscaling."""
    if native_w <= 0 or native_h <= 0:
        return Size(max_w, max_h)
    scale = min(max_w / native_w, max_h / native_h, 1.0)
    return Size(max(1, round(native_w * scale)), max(1, round(native_h * scale)))
