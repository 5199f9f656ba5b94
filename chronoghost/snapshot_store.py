"""Snapshot persistence for timers, selection, keybinds and display settings."""
from __future__ import annotations

import copy
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from chronoghost.dispatch import DEFAULT_OPACITY, clamp_opacity
from chronoghost.keybinds import KeybindSet, default_keybinds, migrate_keybinds
from chronoghost.timer_engine import Timer

SNAPSHOT_FILENAME = "chronoghost_state.json"


@dataclass
class ParsedSnapshot:
    timers: List[Timer] = field(default_factory=list)
    selected_id: Optional[str] = None
    keybinds: KeybindSet = field(default_factory=default_keybinds)
    opacity: float = DEFAULT_OPACITY
    muted: bool = False
    keybinds_migrated: bool = False


def parse_snapshot(raw: Any, primary_symbol: str = "Ctrl") -> ParsedSnapshot:
    """Read a stored snapshot field by field; each bad field falls back alone.

    An empty ``timers`` list means the engine keeps its default ``Timer 1``.
    """
    defaults = default_keybinds(primary_symbol)
    parsed = ParsedSnapshot(keybinds=defaults)
    if not isinstance(raw, Mapping):
        return parsed

    raw_timers = raw.get("timers")
    if isinstance(raw_timers, list):
        seen = set()
        for item in raw_timers:
            if not isinstance(item, Mapping):
                continue
            timer = Timer.from_dict(item)
            if timer is None or timer.id in seen:
                continue
            seen.add(timer.id)
            parsed.timers.append(timer)

    selected = raw.get("selectedTimerId")
    if parsed.timers:
        ids = {timer.id for timer in parsed.timers}
        parsed.selected_id = selected if selected in ids else parsed.timers[0].id

    keybinds = KeybindSet.from_dict(raw.get("keybinds"), primary_symbol)
    if keybinds is not None:
        parsed.keybinds, parsed.keybinds_migrated = migrate_keybinds(keybinds, defaults)

    if "opacity" in raw:
        parsed.opacity = clamp_opacity(raw.get("opacity"), DEFAULT_OPACITY)
    muted = raw.get("muted")
    if isinstance(muted, bool):
        parsed.muted = muted
    return parsed


class SnapshotStore:
    """Holds the latest snapshot and persists it with debounce."""

    def __init__(
        self,
        path: Path,
        debounce_seconds: float = 1.0,
        logger: Any | None = None,
    ) -> None:
        self._path = path
        self._debounce_seconds = max(0.05, float(debounce_seconds))
        self._logger = logger
        self._lock = threading.Lock()
        self._flush_guard = threading.Lock()
        self._pending: Optional[Dict[str, Any]] = None
        self._flush_timer: Optional[threading.Timer] = None

    @property
    def path(self) -> Path:
        return self._path

    def _log_debug(self, message: str) -> None:
        if self._logger is None:
            return
        try:
            self._logger.debug(message)
        except Exception:
            pass

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._log_debug(f"Failed to load snapshot {self._path}: {exc}")
            return None
        if not isinstance(raw, dict):
            self._log_debug(f"Ignoring snapshot {self._path}: top level is not an object")
            return None
        return raw

    def save(self, snapshot: Mapping[str, Any]) -> None:
        with self._lock:
            self._pending = copy.deepcopy(dict(snapshot))
        self._schedule_flush()

    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def flush(self) -> bool:
        """Write any pending snapshot now; returns False when the write failed."""

        with self._lock:
            timer = self._flush_timer
            self._flush_timer = None
        if timer is not None:
            timer.cancel()
        return self._flush(reschedule=False)

    def _schedule_flush(self) -> None:
        with self._lock:
            if self._flush_timer is not None and self._flush_timer.is_alive():
                return
            timer = threading.Timer(self._debounce_seconds, self._flush)
            timer.daemon = True
            self._flush_timer = timer
            timer.start()

    def _flush(self, reschedule: bool = True) -> bool:
        with self._flush_guard:
            with self._lock:
                snapshot = self._pending
                self._pending = None
                self._flush_timer = None
            if snapshot is None:
                return True
            success = self._write_snapshot(snapshot)
        if not success:
            with self._lock:
                if self._pending is None:
                    self._pending = snapshot
            if reschedule:
                self._schedule_flush()
        return success

    def _write_snapshot(self, snapshot: Mapping[str, Any]) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self._path)
            return True
        except Exception as exc:
            self._log_debug(f"Failed to write snapshot {self._path}: {exc}")
            return False
