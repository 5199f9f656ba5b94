"""Window width calculation for the timer row.

Layout constants are logical (CSS-like) units; results are physical pixels.
The toolbar width arrives already measured in physical pixels.
"""
from __future__ import annotations

import logging
import math

_LOGGER = logging.getLogger("ChronoGhost.Geometry")

CARD_WIDTH = 200
CARD_GAP = 11
PADDING_LEFT = 10
PADDING_RIGHT = 10
MIN_LOGICAL_WIDTH = 291
MAX_LOGICAL_WIDTH = 1920
DEFAULT_TOOLBAR_WIDTH = 80


def _safe_scale(scale_factor: float) -> float:
    try:
        value = float(scale_factor)
    except (TypeError, ValueError):
        return 1.0
    if value <= 0.0:
        return 1.0
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def content_logical_width(timer_count: int) -> int:
    count = max(1, int(timer_count))
    return PADDING_LEFT + count * CARD_WIDTH + max(0, count - 1) * CARD_GAP + PADDING_RIGHT


def width_bounds(scale_factor: float) -> tuple[int, int]:
    scale = _safe_scale(scale_factor)
    return _round_half_up(MIN_LOGICAL_WIDTH * scale), _round_half_up(MAX_LOGICAL_WIDTH * scale)


def compute_window_width(
    timer_count: int,
    toolbar_collapsed: bool,
    toolbar_physical_width: int,
    scale_factor: float,
) -> int:
    scale = _safe_scale(scale_factor)
    content_physical = _round_half_up(content_logical_width(timer_count) * scale)
    toolbar = 0 if toolbar_collapsed else max(0, int(toolbar_physical_width))
    total = toolbar + content_physical
    min_width, max_width = width_bounds(scale)
    clamped = max(min_width, min(max_width, total))
    if clamped != total:
        _LOGGER.debug(
            "Window width clamped: raw=%d min=%d max=%d scale=%.3f",
            total,
            min_width,
            max_width,
            scale,
        )
    return clamped


def measure_toolbar_physical_width(css_width: float, scale_factor: float) -> int:
    """Convert a toolbar size hint in logical pixels to physical pixels."""
    return _round_half_up(float(css_width) * _safe_scale(scale_factor))
