"""Per-position colours and completion sounds for timer cards."""
from __future__ import annotations

from typing import Tuple

TIMER_COLOURS: Tuple[str, ...] = (
    "#6366f1",  # indigo
    "#ec4899",  # pink
    "#14b8a6",  # teal
    "#f59e0b",  # amber
    "#8b5cf6",  # purple
    "#10b981",  # emerald
    "#f43f5e",  # rose
    "#3b82f6",  # blue
    "#eab308",  # yellow
)

COMPLETION_SOUNDS: Tuple[str, ...] = (
    "dry-pop-up-notification.wav",
    "long-pop.wav",
    "tile-game-reveal.wav",
    "elevator-tone.wav",
    "preview.mp3",
    "preview-alt.mp3",
)


def colour_for_position(position: int) -> str:
    return TIMER_COLOURS[max(0, int(position)) % len(TIMER_COLOURS)]


def sound_for_position(position: int) -> str:
    return COMPLETION_SOUNDS[max(0, int(position)) % len(COMPLETION_SOUNDS)]


def border_colour(colour: str, alpha_hex: str = "40") -> str:
    """Append an alpha byte, matching the translucent card outline."""

    return f"{colour}{alpha_hex}"
