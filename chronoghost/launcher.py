from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from PyQt6.QtWidgets import QApplication

from chronoghost import __version__
from chronoghost.client_config import SETTINGS_FILENAME, load_initial_settings, resolve_config_dir
from chronoghost.dispatch import AppState, DispatchCoordinator
from chronoghost.hotkeys import HotkeyRegistry, PynputHotkeyBackend
from chronoghost.keybind_capture import KeybindCapture
from chronoghost.logging_utils import configure_logging
from chronoghost.overlay_window import OverlayWindow
from chronoghost.palette import sound_for_position
from chronoghost.platform_context import current_platform
from chronoghost.qt_adapters import HotkeyBridge, QtWindowHost, qt_after, qt_after_cancel
from chronoghost.snapshot_store import SNAPSHOT_FILENAME, SnapshotStore, parse_snapshot
from chronoghost.status_presenter import StatusPresenter
from chronoghost.timer_engine import Timer, TimerEngine
from chronoghost.window_controller import WindowController

_LOGGER = logging.getLogger("ChronoGhost.Launcher")

INITIAL_WINDOW_HEIGHT = 190


def _build_finished_handler(is_muted: Callable[[], bool]) -> Callable[[Timer, int], None]:
    def _handle_finished(timer: Timer, position: int) -> None:
        if is_muted():
            _LOGGER.debug("Timer %s finished while muted", timer.name)
            return
        _LOGGER.info("Completion sound %s for %s", sound_for_position(position), timer.name)

    return _handle_finished


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="ChronoGhost floating multi-timer overlay")
    parser.add_argument("--config-dir", help="Directory holding settings.json and the saved timer state")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    config_dir = Path(args.config_dir).expanduser() if args.config_dir else resolve_config_dir()
    settings_path = config_dir / SETTINGS_FILENAME
    settings = load_initial_settings(settings_path)
    if args.debug:
        settings.debug = True
    configure_logging(debug=settings.debug, retention=settings.log_retention)

    _LOGGER.info("Starting ChronoGhost %s (pid=%s)", __version__, os.getpid())
    _LOGGER.debug(
        "Loaded initial settings from %s: retention=%d debug=%s snapshot_debounce=%.2fs lock_debounce=%dms",
        settings_path,
        settings.log_retention,
        settings.debug,
        settings.snapshot_debounce_seconds,
        settings.lock_debounce_ms,
    )

    context = current_platform()
    store = SnapshotStore(config_dir / SNAPSHOT_FILENAME, settings.snapshot_debounce_seconds, _LOGGER)
    parsed = parse_snapshot(store.load(), context.primary_symbol)

    app = QApplication(sys.argv)
    window = OverlayWindow(primary_symbol=context.primary_symbol)
    after = qt_after(window)

    coordinator: Optional[DispatchCoordinator] = None

    def _on_change(reason: str) -> None:
        if coordinator is None:
            return
        window.refresh()
        coordinator.persist(reason)

    engine = TimerEngine(
        after=after,
        after_cancel=qt_after_cancel,
        on_change=_on_change,
        on_finished=_build_finished_handler(lambda: state.muted),
    )
    state = AppState(engine=engine, keybinds=parsed.keybinds, opacity=parsed.opacity, muted=parsed.muted)
    window_controller = WindowController(QtWindowHost(window), log_fn=_LOGGER.debug)
    status = StatusPresenter(
        show_fn=window.show_status,
        hide_fn=window.hide_status,
        after=after,
        after_cancel=qt_after_cancel,
        log_fn=_LOGGER.debug,
    )
    coordinator = DispatchCoordinator(
        state,
        window=window_controller,
        status=status,
        save_fn=store.save,
        lock_debounce_ms=settings.lock_debounce_ms,
    )
    coordinator.attach_capture(
        KeybindCapture(
            coordinator.capture_conflicts,
            primary_symbol=context.primary_symbol,
            after=after,
            after_cancel=qt_after_cancel,
        )
    )
    engine.restore(parsed.timers, parsed.selected_id)
    if parsed.keybinds_migrated:
        _LOGGER.info("Migrated keybinds from an older release")
        coordinator.persist("keybind migration")
    window.bind(coordinator, window_controller)

    bridge = HotkeyBridge()

    def _on_global_action(action: str, index: int) -> None:
        coordinator.handle_global_action(action, index)
        window.refresh()

    def _on_lock() -> None:
        if coordinator.handle_lock_hotkey():
            window.refresh()

    bridge.action_triggered.connect(_on_global_action)
    bridge.lock_triggered.connect(_on_lock)
    backend = PynputHotkeyBackend(primary=context.pynput_primary)
    registry = HotkeyRegistry(backend, on_action=bridge.emit_action, on_lock=bridge.emit_lock)
    coordinator.attach_hotkeys(registry)

    window.resize(window.sizeHint().width(), INITIAL_WINDOW_HEIGHT)
    window.show()
    _LOGGER.debug(
        "Overlay window shown; timers=%d scale=%.2f platform=%s",
        engine.count,
        window.devicePixelRatioF(),
        context.system,
    )

    exit_code = app.exec()
    registry.clear()
    engine.shutdown()
    store.save(state.snapshot())
    store.flush()
    _LOGGER.info("ChronoGhost exiting with code %s", exit_code)
    return int(exit_code)
