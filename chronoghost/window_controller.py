"""Window sizing and pin-state orchestration.

This module is intended to stay free of Qt types; callers inject a host object
implementing the ``WindowHost`` protocol (see ``qt_adapters.QtWindowHost``).
Every host call is best-effort: failures are logged and swallowed so the
in-memory state remains authoritative.
"""
from __future__ import annotations

import enum
from typing import Callable, Optional, Protocol, Tuple

from chronoghost.geometry import DEFAULT_TOOLBAR_WIDTH, compute_window_width

Size = Tuple[int, int]


class WindowHost(Protocol):
    def current_size(self) -> Size: ...

    def scale_factor(self) -> float: ...

    def resize(self, width: int, height: int) -> None: ...

    def set_resizable(self, resizable: bool) -> None: ...

    def set_ignore_cursor_events(self, ignore: bool) -> None: ...

    def start_drag(self) -> None: ...

    def minimize(self) -> None: ...

    def close(self) -> None: ...


class HitRegion(enum.Enum):
    """Interaction regions reported by the UI layer for drag hit-testing."""

    BACKGROUND = "background"
    TOOLBAR = "toolbar"
    TIMER_CARD = "timer_card"
    SETTINGS = "settings"
    CONTROL = "control"


class WindowController:
    """Applies width changes and pin-related host state as single steps."""

    def __init__(
        self,
        host: WindowHost,
        *,
        log_fn: Callable[..., None],
    ) -> None:
        self._host = host
        self._log = log_fn
        self._toolbar_width: int = DEFAULT_TOOLBAR_WIDTH
        self._last_width: Optional[int] = None
        self._click_through: Optional[bool] = None

    @property
    def toolbar_width(self) -> int:
        return self._toolbar_width

    @property
    def last_width(self) -> Optional[int]:
        return self._last_width

    def set_toolbar_width(self, width: int) -> None:
        value = max(0, int(width))
        if value != self._toolbar_width:
            self._log("Toolbar width measured: %dpx (previous %dpx)", value, self._toolbar_width)
            self._toolbar_width = value

    def resize_for(self, timer_count: int, toolbar_collapsed: bool) -> Optional[int]:
        """Recompute the width for the given state and resize, keeping the current height."""

        try:
            scale = self._host.scale_factor()
            _width, height = self._host.current_size()
        except Exception as exc:
            self._log("Window size query failed: %s", exc)
            return None
        width = compute_window_width(timer_count, toolbar_collapsed, self._toolbar_width, scale)
        self._log(
            "Resizing window: timers=%d collapsed=%s toolbar=%dpx scale=%.3f -> %dx%d",
            timer_count,
            toolbar_collapsed,
            self._toolbar_width,
            scale,
            width,
            height,
        )
        try:
            self._host.resize(width, height)
        except Exception as exc:
            self._log("Window resize failed: %s", exc)
            return None
        self._last_width = width
        return width

    def set_click_through(self, transparent: bool, *, force: bool = False) -> None:
        if not force and self._click_through is not None and self._click_through == transparent:
            return
        self._click_through = transparent
        self._log("Set click-through to %s", transparent)
        self._call("set_ignore_cursor_events", self._host.set_ignore_cursor_events, transparent)

    def set_resizable(self, resizable: bool) -> None:
        self._call("set_resizable", self._host.set_resizable, resizable)

    def request_drag(self, region: HitRegion, *, pinned: bool) -> bool:
        if pinned or region is not HitRegion.BACKGROUND:
            return False
        return self._call("start_drag", self._host.start_drag)

    def minimize(self) -> None:
        self._call("minimize", self._host.minimize)

    def close(self) -> None:
        self._call("close", self._host.close)

    def _call(self, label: str, fn: Callable[..., None], *args: object) -> bool:
        try:
            fn(*args)
        except Exception as exc:
            self._log("Host call %s failed: %s", label, exc)
            return False
        return True
