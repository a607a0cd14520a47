"""
Auto-fit font sizing for the poster banner.

The default path is a cheap width estimate (``len * size * factor``) so sizing
needs no font at all; ``fit_font_size`` does the same proportional scale-down
from real glyph measurements. Both clamp to a legibility floor, which means a
very long string may still overflow ``max_width_px`` once the floor is hit.
"""
import math
from typing import Callable


def estimate_text_width(text: str, font_size: float, avg_glyph_width_factor: float) -> float:
    return len(text) * font_size * avg_glyph_width_factor


def _scale_to_fit(base_font_size: int, max_width_px: float, width: float, min_font_size: int) -> int:
    if width <= max_width_px:
        size = base_font_size
    else:
        size = math.floor(base_font_size * (max_width_px / width))
    return max(size, min_font_size)


def compute_font_size(
    text: str,
    base_font_size: int,
    max_width_px: float,
    avg_glyph_width_factor: float,
    min_font_size: int = 0,
) -> int:
    """
    Font size that keeps ``text`` within ``max_width_px`` by estimate.

    >>> compute_font_size("JOHN", 80, 900, 0.6)
    80
    """
    if not text:
        return base_font_size
    estimated = estimate_text_width(text, base_font_size, avg_glyph_width_factor)
    return _scale_to_fit(base_font_size, max_width_px, estimated, min_font_size)


def fit_font_size(
    text: str,
    base_font_size: int,
    max_width_px: float,
    min_font_size: int,
    measure: Callable[[int], float],
) -> int:
    """Like ``compute_font_size`` but from ``measure(size) -> rendered width``."""
    if not text:
        return base_font_size
    return _scale_to_fit(base_font_size, max_width_px, measure(base_font_size), min_font_size)
