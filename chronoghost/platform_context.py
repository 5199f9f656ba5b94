"""Platform context helpers for modifier labels and hotkey syntax."""
from __future__ import annotations

import os
import platform
from dataclasses import dataclass

PLATFORM_ENV_VAR = "CHRONOGHOST_PLATFORM"


@dataclass(frozen=True)
class PlatformContext:
    system: str

    @property
    def is_macos(self) -> bool:
        return self.system == "macos"

    @property
    def primary_symbol(self) -> str:
        return "⌘" if self.is_macos else "Ctrl"

    @property
    def pynput_primary(self) -> str:
        return "<cmd>" if self.is_macos else "<ctrl>"

    @property
    def alt_symbol(self) -> str:
        return "⌥" if self.is_macos else "Alt"


def _normalise_system(raw: str) -> str:
    token = (raw or "").strip().lower()
    if token in {"darwin", "mac", "macos", "osx"}:
        return "macos"
    if token.startswith("win"):
        return "windows"
    if token:
        return token
    return "linux"


def current_platform() -> PlatformContext:
    override = os.environ.get(PLATFORM_ENV_VAR)
    if override:
        return PlatformContext(system=_normalise_system(override))
    return PlatformContext(system=_normalise_system(platform.system()))
