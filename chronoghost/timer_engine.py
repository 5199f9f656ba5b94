"""Countdown state machine for the overlay's timers.

Scheduling is injected (``after``/``after_cancel``) so the engine stays free of
Qt types; the Qt adapter backs it with single-shot ``QTimer`` objects and tests
drive it with a manual harness. Every running timer owns exactly one pending
tick handle, which is cancelled before any new one is armed.
"""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

_LOGGER = logging.getLogger("ChronoGhost.Timers")

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
ChangeFn = Callable[[str], None]

TICK_MS = 1000
FINISHED_DISPLAY_MS = 3000
MAX_MINUTES = 99
MAX_SECONDS = 59
MAX_NAME_LENGTH = 20

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_FINISHED = "finished"

_TIMER_NAME_RE = re.compile(r"Timer (\d+)")


def _noop_change(reason: str) -> None:
    return None


def _clamp_name(name: object) -> str:
    return str(name or "")[:MAX_NAME_LENGTH]


def _coerce_field(value: Any, maximum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, min(maximum, number))


@dataclass
class Timer:
    id: str
    name: str
    remaining_minutes: int = 0
    remaining_seconds: int = 0
    initial_minutes: int = 0
    initial_seconds: int = 0
    is_running: bool = False
    has_finished: bool = False

    @property
    def state(self) -> str:
        if self.is_running:
            return STATE_RUNNING
        if self.has_finished:
            return STATE_FINISHED
        return STATE_IDLE

    @property
    def is_depleted(self) -> bool:
        return self.remaining_minutes == 0 and self.remaining_seconds == 0

    @property
    def display(self) -> str:
        return f"{self.remaining_minutes:02d}:{self.remaining_seconds:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "minutes": self.remaining_minutes,
            "seconds": self.remaining_seconds,
            "initialMinutes": self.initial_minutes,
            "initialSeconds": self.initial_seconds,
            "isRunning": self.is_running,
            "hasFinished": self.has_finished,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Optional["Timer"]:
        raw_id = payload.get("id")
        if raw_id is None or isinstance(raw_id, bool) or str(raw_id).strip() == "":
            return None
        return cls(
            id=str(raw_id),
            name=_clamp_name(payload.get("name")),
            remaining_minutes=_coerce_field(payload.get("minutes"), MAX_MINUTES),
            remaining_seconds=_coerce_field(payload.get("seconds"), MAX_SECONDS),
            initial_minutes=_coerce_field(payload.get("initialMinutes"), MAX_MINUTES),
            initial_seconds=_coerce_field(payload.get("initialSeconds"), MAX_SECONDS),
        )


def _new_timer_id() -> str:
    return uuid.uuid4().hex


def next_timer_number(names: Iterable[str]) -> int:
    """Lowest ``N >= 1`` not already used by a ``Timer N`` name."""

    used = set()
    for name in names:
        match = _TIMER_NAME_RE.search(name or "")
        if match:
            used.add(int(match.group(1)))
    number = 1
    while number in used:
        number += 1
    return number


class TimerEngine:
    """Owns the ordered timer collection, the selection, and the tick handles."""

    def __init__(
        self,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        on_change: Optional[ChangeFn] = None,
        on_finished: Optional[Callable[[Timer, int], None]] = None,
        id_factory: Callable[[], str] = _new_timer_id,
    ) -> None:
        self._after = after
        self._after_cancel = after_cancel
        self._on_change = on_change or _noop_change
        self._on_finished = on_finished
        self._id_factory = id_factory
        self._timers: List[Timer] = []
        self._selected_id: Optional[str] = None
        self._tick_handles: Dict[str, Tuple[int, object]] = {}
        self._finish_handles: Dict[str, Tuple[int, object]] = {}
        self._generation = 0
        first = self._create_timer(1)
        self._timers.append(first)
        self._selected_id = first.id

    # ------------------------------------------------------------------ queries

    @property
    def timers(self) -> Tuple[Timer, ...]:
        return tuple(self._timers)

    @property
    def count(self) -> int:
        return len(self._timers)

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def get(self, timer_id: Optional[str]) -> Optional[Timer]:
        for timer in self._timers:
            if timer.id == timer_id:
                return timer
        return None

    def at(self, index: int) -> Optional[Timer]:
        if 0 <= index < len(self._timers):
            return self._timers[index]
        return None

    def position(self, timer_id: str) -> int:
        for index, timer in enumerate(self._timers):
            if timer.id == timer_id:
                return index
        return -1

    def selected(self) -> Optional[Timer]:
        return self.get(self._selected_id)

    def has_pending_tick(self, timer_id: str) -> bool:
        return timer_id in self._tick_handles

    # ---------------------------------------------------------------- mutations

    def select(self, timer_id: str) -> bool:
        if self.get(timer_id) is None:
            return False
        if self._selected_id != timer_id:
            self._selected_id = timer_id
            self._notify("select")
        return True

    def toggle(self, timer_id: str) -> bool:
        timer = self.get(timer_id)
        if timer is None:
            return False
        if timer.is_running:
            return self.pause(timer_id)
        return self.start(timer_id)

    def start(self, timer_id: str) -> bool:
        timer = self.get(timer_id)
        if timer is None or timer.is_running:
            return False
        if timer.is_depleted:
            _LOGGER.debug("Start ignored for %s: remaining time is 00:00", timer.id)
            return False
        timer.is_running = True
        self._arm_tick(timer)
        self._notify("start")
        return True

    def pause(self, timer_id: str) -> bool:
        timer = self.get(timer_id)
        if timer is None or not timer.is_running:
            return False
        timer.is_running = False
        self._cancel_tick(timer.id)
        self._notify("pause")
        return True

    def reset(self, timer_id: str) -> bool:
        timer = self.get(timer_id)
        if timer is None:
            return False
        self._cancel_tick(timer.id)
        timer.is_running = False
        timer.remaining_minutes = timer.initial_minutes
        timer.remaining_seconds = timer.initial_seconds
        self._notify("reset")
        return True

    def adjust(self, timer_id: str, unit: str, delta: int) -> bool:
        """Step minutes or seconds while idle; the reset target follows the edit."""

        if unit not in ("minutes", "seconds"):
            raise ValueError(f"Unknown time unit '{unit}'")
        timer = self.get(timer_id)
        if timer is None or timer.is_running:
            return False
        if unit == "minutes":
            value = timer.remaining_minutes + int(delta)
            if value < 0 or value > MAX_MINUTES:
                return False
            timer.remaining_minutes = value
            timer.initial_minutes = value
        else:
            value = timer.remaining_seconds + int(delta)
            if value < 0 or value > MAX_SECONDS:
                return False
            timer.remaining_seconds = value
            timer.initial_seconds = value
        self._notify("adjust")
        return True

    def set_time(self, timer_id: str, minutes: int, seconds: int) -> bool:
        timer = self.get(timer_id)
        if timer is None or timer.is_running:
            return False
        if not (0 <= minutes <= MAX_MINUTES and 0 <= seconds <= MAX_SECONDS):
            return False
        timer.remaining_minutes = timer.initial_minutes = int(minutes)
        timer.remaining_seconds = timer.initial_seconds = int(seconds)
        self._notify("set_time")
        return True

    def rename(self, timer_id: str, name: str) -> bool:
        timer = self.get(timer_id)
        if timer is None:
            return False
        clamped = _clamp_name(name)
        if clamped == timer.name:
            return False
        timer.name = clamped
        self._notify("rename")
        return True

    def add_timer(self) -> Timer:
        number = next_timer_number(timer.name for timer in self._timers)
        timer = self._create_timer(number)
        self._timers.append(timer)
        self._selected_id = timer.id
        _LOGGER.debug("Added %s (%s); count=%d", timer.name, timer.id, len(self._timers))
        self._notify("add")
        return timer

    def remove_timer(self, timer_id: str) -> bool:
        if len(self._timers) <= 1:
            return False
        timer = self.get(timer_id)
        if timer is None:
            return False
        self._cancel_tick(timer.id)
        self._cancel_finish_clear(timer.id)
        self._timers = [item for item in self._timers if item.id != timer_id]
        if self._selected_id == timer_id:
            self._selected_id = self._timers[0].id
        _LOGGER.debug("Removed %s (%s); count=%d", timer.name, timer.id, len(self._timers))
        self._notify("remove")
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "timers": [timer.to_dict() for timer in self._timers],
            "selectedTimerId": self._selected_id,
        }

    def restore(self, timers: Iterable[Timer], selected_id: Optional[str]) -> None:
        """Replace the collection from a snapshot; restored timers start idle."""

        restored = [timer for timer in timers if timer is not None]
        if not restored:
            return
        self.shutdown()
        for timer in restored:
            timer.is_running = False
            timer.has_finished = False
        self._timers = restored
        if self.get(selected_id) is None:
            selected_id = restored[0].id
        self._selected_id = selected_id
        self._notify("restore")

    def shutdown(self) -> None:
        for timer_id in list(self._tick_handles):
            self._cancel_tick(timer_id)
        for timer_id in list(self._finish_handles):
            self._cancel_finish_clear(timer_id)

    # -------------------------------------------------------------------- ticks

    def tick(self, timer_id: str) -> None:
        timer = self.get(timer_id)
        if timer is None or not timer.is_running:
            return
        if timer.is_depleted:
            self._finish(timer)
            return
        if timer.remaining_seconds > 0:
            timer.remaining_seconds -= 1
        elif timer.remaining_minutes > 0:
            timer.remaining_minutes -= 1
            timer.remaining_seconds = MAX_SECONDS
        self._arm_tick(timer)
        self._notify("tick")

    def _finish(self, timer: Timer) -> None:
        timer.is_running = False
        timer.has_finished = True
        timer.remaining_minutes = timer.initial_minutes
        timer.remaining_seconds = timer.initial_seconds
        self._cancel_tick(timer.id)
        self._arm_finish_clear(timer)
        position = self.position(timer.id)
        _LOGGER.info("Timer finished: %s (position=%d)", timer.name, position)
        self._notify("finished")
        if self._on_finished is not None:
            try:
                self._on_finished(timer, position)
            except Exception as exc:
                _LOGGER.debug("Finished handler failed for %s: %s", timer.id, exc)

    def _clear_finished(self, timer_id: str, generation: int) -> None:
        current = self._finish_handles.get(timer_id)
        if current is None or current[0] != generation:
            return
        del self._finish_handles[timer_id]
        timer = self.get(timer_id)
        if timer is None or not timer.has_finished:
            return
        timer.has_finished = False
        self._notify("finished_cleared")

    def _run_tick(self, timer_id: str, generation: int) -> None:
        current = self._tick_handles.get(timer_id)
        if current is None or current[0] != generation:
            return
        del self._tick_handles[timer_id]
        self.tick(timer_id)

    def _arm_tick(self, timer: Timer) -> None:
        self._cancel_tick(timer.id)
        generation = self._next_generation()
        timer_id = timer.id
        handle = self._after(TICK_MS, lambda: self._run_tick(timer_id, generation))
        self._tick_handles[timer_id] = (generation, handle)

    def _cancel_tick(self, timer_id: str) -> None:
        entry = self._tick_handles.pop(timer_id, None)
        if entry is not None:
            self._cancel_handle(entry[1])

    def _arm_finish_clear(self, timer: Timer) -> None:
        self._cancel_finish_clear(timer.id)
        generation = self._next_generation()
        timer_id = timer.id
        handle = self._after(FINISHED_DISPLAY_MS, lambda: self._clear_finished(timer_id, generation))
        self._finish_handles[timer_id] = (generation, handle)

    def _cancel_finish_clear(self, timer_id: str) -> None:
        entry = self._finish_handles.pop(timer_id, None)
        if entry is not None:
            self._cancel_handle(entry[1])

    def _cancel_handle(self, handle: object) -> None:
        try:
            self._after_cancel(handle)
        except Exception:
            pass

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _create_timer(self, number: int) -> Timer:
        return Timer(id=self._id_factory(), name=f"Timer {number}")

    def _notify(self, reason: str) -> None:
        try:
            self._on_change(reason)
        except Exception as exc:
            _LOGGER.debug("Change listener failed (reason=%s): %s", reason, exc)
