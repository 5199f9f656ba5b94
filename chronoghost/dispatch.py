"""Routes key events and global hotkeys into timer, window, and status updates.

The coordinator reads everything through one shared ``AppState`` cell so the
long-lived hotkey subscription (registered once per process) always sees the
current timers and selection.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from chronoghost.hotkeys import (
    ACTION_RESET,
    ACTION_RESET_SELECTED,
    ACTION_TOGGLE,
    ACTION_TOGGLE_SELECTED,
    HotkeyRegistry,
)
from chronoghost.keybind_capture import CaptureResult, KeybindCapture
from chronoghost.keybinds import MAX_SLOTS, BindingPair, Keybind, KeybindSet, KeyEvent, matches
from chronoghost.status_presenter import StatusPresenter
from chronoghost.timer_engine import Timer, TimerEngine
from chronoghost.window_controller import HitRegion, WindowController

_LOGGER = logging.getLogger("ChronoGhost.Dispatch")

LOCK_DEBOUNCE_MS = 300
MIN_OPACITY = 0.3
MAX_OPACITY = 1.0
DEFAULT_OPACITY = 0.85

LOCKED_HOTKEY_MESSAGE = "🔒 Locked (Click-through enabled)"
LOCKED_MESSAGE = "🔒 Locked"
UNLOCKED_MESSAGE = "🔓 Unlocked"
CAPTURE_PROMPT = "Press a key combination (Esc cancels)"
BINDING_SET_MESSAGE = "Keybind set: {label}"
BINDING_CLEARED_MESSAGE = "Keybind cleared"

BINDING_ACTIONS = ("toggle", "reset")

# (slot index or None for the selected-timer pair, action)
BindingTarget = Tuple[Optional[int], str]


def clamp_opacity(value: Any, fallback: float = DEFAULT_OPACITY) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = fallback
    if number != number:  # NaN
        number = fallback
    return max(MIN_OPACITY, min(MAX_OPACITY, number))


@dataclass
class AppState:
    """Mutable state shared by the UI callbacks and the hotkey subscription."""

    engine: TimerEngine
    keybinds: KeybindSet
    pinned: bool = False
    toolbar_collapsed: bool = False
    opacity: float = DEFAULT_OPACITY
    muted: bool = False
    settings_open: bool = False

    def snapshot(self) -> Dict[str, Any]:
        payload = self.engine.snapshot()
        payload.update(
            {
                "keybinds": self.keybinds.to_dict(),
                "opacity": self.opacity,
                "muted": self.muted,
            }
        )
        return payload


class DispatchCoordinator:
    """Maps raw input to timer actions and keeps window state in step."""

    def __init__(
        self,
        state: AppState,
        *,
        window: WindowController,
        status: StatusPresenter,
        save_fn: Optional[Callable[[Dict[str, Any]], None]] = None,
        time_source: Callable[[], float] = time.monotonic,
        lock_debounce_ms: int = LOCK_DEBOUNCE_MS,
    ) -> None:
        self._state = state
        self._window = window
        self._status = status
        self._save = save_fn
        self._time = time_source
        self._lock_debounce = max(0, int(lock_debounce_ms)) / 1000.0
        self._last_lock_accepted: Optional[float] = None
        self._hotkeys: Optional[HotkeyRegistry] = None
        self._capture: Optional[KeybindCapture] = None
        self._capture_target: Optional[BindingTarget] = None

    @property
    def state(self) -> AppState:
        return self._state

    def attach_hotkeys(self, registry: HotkeyRegistry) -> None:
        self._hotkeys = registry
        registry.replace(self._state.keybinds)

    # ----------------------------------------------------------- in-window keys

    def handle_key_event(self, event: KeyEvent) -> bool:
        """Return True when the event was consumed by a timer binding."""

        if self._state.settings_open or event.in_text_field:
            return False
        engine = self._state.engine
        keybinds = self._state.keybinds
        slot_limit = min(engine.count, MAX_SLOTS, len(keybinds.slots))
        for index in range(slot_limit):
            slot = keybinds.slots[index]
            timer = engine.at(index)
            if timer is None:
                break
            if matches(event, slot.toggle):
                self._toggle(timer, select=True)
                return True
            if matches(event, slot.reset):
                self._reset(timer, select=True)
                return True
        return self._dispatch_selected(event, keybinds.selected)

    def _dispatch_selected(self, event: KeyEvent, pair: BindingPair) -> bool:
        timer = self._state.engine.selected()
        if timer is None:
            return False
        if matches(event, pair.toggle):
            self._toggle(timer, select=False)
            return True
        if matches(event, pair.reset):
            self._reset(timer, select=False)
            return True
        return False

    # ------------------------------------------------------------- global keys

    def handle_global_action(self, action: str, index: int = 0) -> bool:
        engine = self._state.engine
        if action in (ACTION_TOGGLE, ACTION_RESET):
            timer = engine.at(index)
            if timer is None:
                _LOGGER.debug("Global %s ignored: no timer at position %d", action, index)
                return False
            if action == ACTION_TOGGLE:
                return self._toggle(timer, select=True)
            return self._reset(timer, select=True)
        if action in (ACTION_TOGGLE_SELECTED, ACTION_RESET_SELECTED):
            timer = engine.selected()
            if timer is None:
                return False
            if action == ACTION_TOGGLE_SELECTED:
                return self._toggle(timer, select=False)
            return self._reset(timer, select=False)
        _LOGGER.debug("Unknown global action '%s' ignored", action)
        return False

    def handle_lock_hotkey(self, now: Optional[float] = None) -> bool:
        """Debounced lock toggle; returns False when the firing was dropped."""

        current = self._time() if now is None else now
        last = self._last_lock_accepted
        if last is not None and (current - last) < self._lock_debounce:
            _LOGGER.debug("Lock hotkey debounced (%.0fms since last)", (current - last) * 1000.0)
            return False
        self._last_lock_accepted = current
        state = self._state
        state.pinned = not state.pinned
        state.toolbar_collapsed = state.pinned
        self._window.resize_for(state.engine.count, state.toolbar_collapsed)
        self._window.set_click_through(state.pinned)
        self._window.set_resizable(not state.pinned)
        self._status.show(LOCKED_HOTKEY_MESSAGE if state.pinned else UNLOCKED_MESSAGE)
        _LOGGER.info("Overlay %s via hotkey", "locked" if state.pinned else "unlocked")
        return True

    # --------------------------------------------------------- toolbar actions

    def toggle_pin(self) -> None:
        state = self._state
        state.pinned = not state.pinned
        self._window.set_resizable(not state.pinned)
        self._status.show(LOCKED_MESSAGE if state.pinned else UNLOCKED_MESSAGE)

    def toggle_toolbar(self) -> bool:
        state = self._state
        if state.pinned:
            return False
        state.toolbar_collapsed = not state.toolbar_collapsed
        self._window.resize_for(state.engine.count, state.toolbar_collapsed)
        return True

    def expand_toolbar(self) -> bool:
        state = self._state
        if state.pinned:
            return False
        state.toolbar_collapsed = False
        self._window.resize_for(state.engine.count, False)
        return True

    def add_timer(self) -> Timer:
        timer = self._state.engine.add_timer()
        self._window.resize_for(self._state.engine.count, self._state.toolbar_collapsed)
        return timer

    def remove_timer(self, timer_id: str) -> bool:
        if not self._state.engine.remove_timer(timer_id):
            return False
        self._window.resize_for(self._state.engine.count, self._state.toolbar_collapsed)
        return True

    def refresh_geometry(self) -> None:
        self._window.resize_for(self._state.engine.count, self._state.toolbar_collapsed)

    def drag_requested(self, region: HitRegion) -> bool:
        return self._window.request_drag(region, pinned=self._state.pinned)

    # ---------------------------------------------------------------- settings

    def update_keybinds(self, keybinds: KeybindSet) -> None:
        self._state.keybinds = keybinds
        self.persist("keybinds")
        if self._hotkeys is not None:
            self._hotkeys.replace(keybinds)

    # --------------------------------------------------------------- rebinding

    def attach_capture(self, capture: KeybindCapture) -> None:
        self._capture = capture

    @property
    def capturing(self) -> bool:
        return self._capture_target is not None

    @property
    def capture_target(self) -> Optional[BindingTarget]:
        return self._capture_target

    def binding_at(self, slot: Optional[int], action: str) -> Optional[Keybind]:
        if not self._valid_target(slot, action):
            return None
        keybinds = self._state.keybinds
        pair = keybinds.selected if slot is None else keybinds.slots[slot]
        return pair.get(action)

    def capture_conflicts(self) -> List[Keybind]:
        """Bindings a capture may not reuse: the whole set minus the one being edited."""

        bindings = self._state.keybinds.all_bindings()
        if self._capture_target is not None:
            current = self.binding_at(*self._capture_target)
            if current is not None and current in bindings:
                bindings.remove(current)
        return bindings

    def begin_capture(self, slot: Optional[int], action: str) -> bool:
        """Start rebinding one control; key presses go to the capture until it ends."""

        if self._capture is None or not self._valid_target(slot, action):
            _LOGGER.debug("Capture not started for slot=%s action=%s", slot, action)
            return False
        self._capture_target = (slot, action)
        self.set_settings_open(True)
        self._capture.begin()
        self._status.show(CAPTURE_PROMPT)
        return True

    def handle_capture_key(self, event: KeyEvent) -> CaptureResult:
        if self._capture is None or self._capture_target is None:
            return CaptureResult("ignored")
        result = self._capture.handle(event)
        if result.status == "captured":
            self._apply_binding(result.keybind)
        elif result.status == "duplicate":
            self._status.show(self._capture.error)
            self._end_capture()
        elif result.status == "cancelled":
            self._end_capture()
        return result

    def cancel_capture(self) -> None:
        if self._capture is not None:
            self._capture.cancel()
        self._end_capture()

    def clear_binding(self, slot: Optional[int], action: str) -> bool:
        if self._capture is None or not self._valid_target(slot, action):
            return False
        self._capture_target = (slot, action)
        self._apply_binding(self._capture.clear().keybind)
        return True

    def _valid_target(self, slot: Optional[int], action: str) -> bool:
        if action not in BINDING_ACTIONS:
            return False
        return slot is None or 0 <= slot < len(self._state.keybinds.slots)

    def _apply_binding(self, keybind: Optional[Keybind]) -> None:
        target = self._capture_target
        self._end_capture()
        if target is None:
            return
        slot, action = target
        keybinds = self._state.keybinds
        if slot is None:
            updated = keybinds.replace_selected(action, keybind)
        else:
            updated = keybinds.replace_slot(slot, action, keybind)
        _LOGGER.info(
            "Keybind for %s %s set to %s",
            "selected timer" if slot is None else f"slot {slot + 1}",
            action,
            keybind.label if keybind else "none",
        )
        self.update_keybinds(updated)
        if keybind is None:
            self._status.show(BINDING_CLEARED_MESSAGE)
        else:
            self._status.show(BINDING_SET_MESSAGE.format(label=keybind.label))

    def _end_capture(self) -> None:
        self._capture_target = None
        self.set_settings_open(False)

    # -------------------------------------------------------------- appearance

    def set_opacity(self, value: float) -> float:
        self._state.opacity = clamp_opacity(value, self._state.opacity)
        self.persist("opacity")
        return self._state.opacity

    def set_muted(self, muted: bool) -> None:
        self._state.muted = bool(muted)
        self.persist("muted")

    def set_settings_open(self, is_open: bool) -> None:
        self._state.settings_open = bool(is_open)

    def persist(self, reason: str = "change") -> None:
        if self._save is None:
            return
        try:
            self._save(self._state.snapshot())
        except Exception as exc:
            _LOGGER.debug("Snapshot save failed (reason=%s): %s", reason, exc)

    # ---------------------------------------------------------------- helpers

    def _toggle(self, timer: Timer, *, select: bool) -> bool:
        engine = self._state.engine
        if not timer.is_running and timer.is_depleted:
            return False
        if select:
            engine.select(timer.id)
        return engine.toggle(timer.id)

    def _reset(self, timer: Timer, *, select: bool) -> bool:
        engine = self._state.engine
        if select:
            engine.select(timer.id)
        return engine.reset(timer.id)
