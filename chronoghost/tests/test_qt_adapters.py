from __future__ import annotations

import itertools
import os

import pytest

# PyQt-dependent tests are guarded by the pyqt_required marker.
pytest.importorskip("PyQt6.QtWidgets")

from PyQt6.QtCore import QEvent, QPoint, Qt  # noqa: E402
from PyQt6.QtGui import QKeyEvent  # noqa: E402
from PyQt6.QtWidgets import QApplication, QWidget  # noqa: E402

from chronoghost.dispatch import AppState, DispatchCoordinator  # noqa: E402
from chronoghost.geometry import content_logical_width  # noqa: E402
from chronoghost.keybind_capture import KeybindCapture  # noqa: E402
from chronoghost.keybinds import default_keybinds  # noqa: E402
from chronoghost.overlay_window import OverlayWindow  # noqa: E402
from chronoghost.qt_adapters import (  # noqa: E402
    HotkeyBridge,
    QtWindowHost,
    key_name_for,
    qt_after,
    qt_after_cancel,
    qt_key_to_event,
)
from chronoghost.status_presenter import StatusPresenter  # noqa: E402
from chronoghost.timer_engine import TimerEngine  # noqa: E402
from chronoghost.window_controller import HitRegion, WindowController  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.mark.pyqt_required
def test_key_names_follow_binding_conventions(qapp) -> None:
    assert key_name_for(Qt.Key.Key_R.value) == "r"
    assert key_name_for(Qt.Key.Key_R.value, shift=True) == "R"
    assert key_name_for(Qt.Key.Key_1.value) == "1"
    assert key_name_for(Qt.Key.Key_Exclam.value, "!", shift=True) == "1"
    assert key_name_for(Qt.Key.Key_Exclam.value, "!") == "!"
    assert key_name_for(Qt.Key.Key_Space.value) == " "
    assert key_name_for(Qt.Key.Key_F5.value) == "F5"
    assert key_name_for(Qt.Key.Key_Escape.value) == "Escape"
    assert key_name_for(Qt.Key.Key_Control.value) == "Control"


@pytest.mark.pyqt_required
def test_qt_key_event_conversion(qapp) -> None:
    event = QKeyEvent(
        QEvent.Type.KeyPress,
        Qt.Key.Key_2.value,
        Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.ShiftModifier,
        "2",
    )

    converted = qt_key_to_event(event, in_text_field=True)

    assert converted.key == "2"
    assert converted.modifiers == frozenset({"ctrl", "shift"})
    assert converted.in_text_field is True


@pytest.mark.pyqt_required
def test_qt_after_cancel_stops_timer(qapp) -> None:
    fired: list[str] = []
    handle = qt_after(None)(10_000, lambda: fired.append("x"))

    assert handle.isActive()
    qt_after_cancel(handle)

    assert not handle.isActive()
    assert fired == []


@pytest.mark.pyqt_required
def test_hotkey_bridge_emits_signals(qapp) -> None:
    bridge = HotkeyBridge()
    received: list[tuple] = []
    bridge.action_triggered.connect(lambda action, index: received.append((action, index)))
    bridge.lock_triggered.connect(lambda: received.append(("lock",)))

    bridge.emit_action("toggle", 3)
    bridge.emit_lock()

    assert received == [("toggle", 3), ("lock",)]


@pytest.mark.pyqt_required
def test_window_host_reports_physical_size(qapp) -> None:
    widget = QWidget()
    widget.resize(300, 150)
    host = QtWindowHost(widget)
    scale = host.scale_factor()

    assert host.current_size() == (int(round(300 * scale)), int(round(150 * scale)))

    host.set_resizable(False)
    host.resize(int(round(400 * scale)), int(round(150 * scale)))

    assert widget.width() == 400
    assert widget.minimumWidth() == widget.maximumWidth() == 400


class BoundWindow:
    def __init__(self, timers: int = 1) -> None:
        counter = itertools.count(1)
        self.window = OverlayWindow(primary_symbol="Ctrl")
        after = qt_after(self.window)
        self.engine = TimerEngine(after=after, after_cancel=qt_after_cancel, id_factory=lambda: f"t{next(counter)}")
        for _ in range(timers - 1):
            self.engine.add_timer()
        self.state = AppState(engine=self.engine, keybinds=default_keybinds())
        self.controller = WindowController(QtWindowHost(self.window), log_fn=lambda *args: None)
        status = StatusPresenter(
            show_fn=self.window.show_status,
            hide_fn=self.window.hide_status,
            after=after,
            after_cancel=qt_after_cancel,
            log_fn=lambda *args: None,
        )
        self.coordinator = DispatchCoordinator(self.state, window=self.controller, status=status)
        self.coordinator.attach_capture(
            KeybindCapture(self.coordinator.capture_conflicts, after=after, after_cancel=qt_after_cancel)
        )
        self.window.bind(self.coordinator, self.controller)


@pytest.mark.pyqt_required
def test_overlay_window_builds_cards_and_hit_regions(qapp) -> None:
    rig = BoundWindow(timers=2)
    window = rig.window
    window.resize(800, 200)

    assert len(window._cards) == 2
    card = window._cards["t1"]
    assert card.time_label.text() == "00:00"
    assert window.hit_region_at(QPoint(-5, -5)) is HitRegion.BACKGROUND

    rig.engine.set_time("t1", 3, 5)
    window.refresh()
    assert card.time_label.text() == "03:05"

    window.add_timer()
    assert len(window._cards) == 3


@pytest.mark.pyqt_required
def test_window_width_matches_computed_width_in_both_toolbar_states(qapp) -> None:
    rig = BoundWindow(timers=4)
    window = rig.window
    window.resize(1200, 190)
    window.show()
    qapp.processEvents()
    window.measure_toolbar()

    assert rig.controller.toolbar_width == window.toolbar.sizeHint().width()
    assert window.width() == rig.controller.last_width

    assert rig.coordinator.toggle_toolbar() is True
    window.refresh()
    qapp.processEvents()

    assert rig.controller.last_width == content_logical_width(4)
    assert window.width() == rig.controller.last_width
    assert not window.expand_button.isHidden()

    window.expand_button.click()
    qapp.processEvents()

    assert rig.state.toolbar_collapsed is False
    assert window.width() == rig.controller.last_width
    window.hide()


@pytest.mark.pyqt_required
def test_expand_button_shows_lock_while_pinned(qapp) -> None:
    rig = BoundWindow(timers=2)
    window = rig.window

    assert rig.coordinator.handle_lock_hotkey(now=1.0) is True
    window.refresh()

    assert not window.expand_button.isHidden()
    assert window.expand_button.text() == "🔒"
    assert "Ctrl+Shift+L" in window.expand_button.toolTip()

    window.expand_button.click()

    assert rig.state.pinned is True
    assert rig.state.toolbar_collapsed is True


@pytest.mark.pyqt_required
def test_binding_menu_captures_a_new_slot_binding(qapp) -> None:
    rig = BoundWindow(timers=2)
    window = rig.window

    menu = window.binding_menu(0)
    texts = [action.text() for action in menu.actions() if not action.isSeparator()]
    assert texts == ["Start/Pause: Ctrl+1", "Reset: Ctrl+Shift+1", "Clear Start/Pause", "Clear Reset"]

    menu.actions()[0].trigger()
    assert rig.coordinator.capturing is True
    assert rig.state.settings_open is True

    window.keyPressEvent(
        QKeyEvent(
            QEvent.Type.KeyPress,
            Qt.Key.Key_Q.value,
            Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.AltModifier,
            "q",
        )
    )

    assert rig.coordinator.capturing is False
    assert rig.state.keybinds.slots[0].toggle.label == "Ctrl+Alt+Q"
