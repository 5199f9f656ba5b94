"""Capture state for rebinding a single keybind control."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from chronoghost.keybinds import Keybind, KeyEvent

_LOGGER = logging.getLogger("ChronoGhost.Capture")

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]

MODIFIER_ONLY_KEYS = frozenset({"Control", "Shift", "Alt", "Meta", "AltGraph"})
DUPLICATE_MESSAGE = "This keybind is already in use"
ERROR_DISPLAY_MS = 2000


@dataclass(frozen=True)
class CaptureResult:
    status: str  # captured, cancelled, duplicate, waiting, ignored
    keybind: Optional[Keybind] = None


class KeybindCapture:
    """Turns the next non-modifier key-down into a binding, rejecting duplicates."""

    def __init__(
        self,
        existing_fn: Callable[[], Iterable[Keybind]],
        *,
        primary_symbol: str = "Ctrl",
        after: AfterFn,
        after_cancel: AfterCancelFn,
    ) -> None:
        self._existing = existing_fn
        self._primary_symbol = primary_symbol
        self._after = after
        self._after_cancel = after_cancel
        self._capturing = False
        self._error = ""
        self._error_handle: object | None = None

    @property
    def capturing(self) -> bool:
        return self._capturing

    @property
    def error(self) -> str:
        return self._error

    def begin(self) -> None:
        self._capturing = True
        self._clear_error()

    def cancel(self) -> None:
        self._capturing = False
        self._clear_error()

    def clear(self) -> CaptureResult:
        """Unbind the control being edited."""

        self._capturing = False
        self._clear_error()
        return CaptureResult("captured", None)

    def handle(self, event: KeyEvent) -> CaptureResult:
        if not self._capturing:
            return CaptureResult("ignored")
        if event.key == "Escape":
            self.cancel()
            return CaptureResult("cancelled")
        if event.key in MODIFIER_ONLY_KEYS:
            return CaptureResult("waiting")

        candidate = Keybind.create(event.key, event.modifiers, self._primary_symbol)
        taken = {binding.signature for binding in self._existing() if binding is not None}
        self._capturing = False
        if candidate.signature in taken:
            _LOGGER.debug("Rejected duplicate keybind %s", candidate.label)
            self._set_error(DUPLICATE_MESSAGE)
            return CaptureResult("duplicate")
        self._clear_error()
        return CaptureResult("captured", candidate)

    def _set_error(self, message: str) -> None:
        self._cancel_error_timer()
        self._error = message
        self._error_handle = self._after(ERROR_DISPLAY_MS, self._expire_error)

    def _expire_error(self) -> None:
        self._error_handle = None
        self._error = ""

    def _clear_error(self) -> None:
        self._cancel_error_timer()
        self._error = ""

    def _cancel_error_timer(self) -> None:
        handle = self._error_handle
        self._error_handle = None
        if handle is not None:
            try:
                self._after_cancel(handle)
            except Exception:
                pass
