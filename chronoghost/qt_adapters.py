"""Qt implementations of the injected seams used by the core modules."""
from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QKeyEvent
from PyQt6.QtWidgets import QWidget

from chronoghost.keybinds import SHIFTED_DIGITS, KeyEvent

QWIDGETSIZE_MAX = 16777215

_NAMED_KEYS: Dict[int, str] = {
    Qt.Key.Key_Space.value: " ",
    Qt.Key.Key_Escape.value: "Escape",
    Qt.Key.Key_Up.value: "ArrowUp",
    Qt.Key.Key_Down.value: "ArrowDown",
    Qt.Key.Key_Left.value: "ArrowLeft",
    Qt.Key.Key_Right.value: "ArrowRight",
    Qt.Key.Key_Return.value: "Enter",
    Qt.Key.Key_Enter.value: "Enter",
    Qt.Key.Key_Tab.value: "Tab",
    Qt.Key.Key_Backspace.value: "Backspace",
    Qt.Key.Key_Delete.value: "Delete",
    Qt.Key.Key_Insert.value: "Insert",
    Qt.Key.Key_Home.value: "Home",
    Qt.Key.Key_End.value: "End",
    Qt.Key.Key_PageUp.value: "PageUp",
    Qt.Key.Key_PageDown.value: "PageDown",
    Qt.Key.Key_Control.value: "Control",
    Qt.Key.Key_Shift.value: "Shift",
    Qt.Key.Key_Alt.value: "Alt",
    Qt.Key.Key_Meta.value: "Meta",
    Qt.Key.Key_AltGr.value: "AltGraph",
}


def qt_after(parent: Optional[QObject] = None) -> Callable[[int, Callable[[], None]], QTimer]:
    """Return an ``after(ms, callback)`` backed by single-shot QTimers."""

    def _after(delay_ms: int, callback: Callable[[], None]) -> QTimer:
        timer = QTimer(parent)
        timer.setSingleShot(True)

        def _fire() -> None:
            timer.deleteLater()
            callback()

        timer.timeout.connect(_fire)
        timer.start(max(0, int(delay_ms)))
        return timer

    return _after


def qt_after_cancel(handle: object) -> None:
    if isinstance(handle, QTimer):
        handle.stop()
        handle.deleteLater()


def key_name_for(key: int, text: str = "", shift: bool = False) -> str:
    """Name a Qt key code the way bindings store keys (``"r"``, ``"F5"``, ``" "``)."""

    key = int(key)
    if key in _NAMED_KEYS:
        return _NAMED_KEYS[key]
    if Qt.Key.Key_F1.value <= key <= Qt.Key.Key_F35.value:
        return f"F{key - Qt.Key.Key_F1.value + 1}"
    if 0x21 <= key <= 0x7E:
        char = chr(key)
        if char.isalpha():
            return char.upper() if shift else char.lower()
        if shift and char in SHIFTED_DIGITS:
            return SHIFTED_DIGITS[char]
        return char
    if text and text.isprintable():
        return text
    return ""


def qt_key_to_event(event: QKeyEvent, *, in_text_field: bool = False) -> KeyEvent:
    modifiers = event.modifiers()
    shift = bool(modifiers & Qt.KeyboardModifier.ShiftModifier)
    return KeyEvent(
        key=key_name_for(event.key(), event.text(), shift),
        ctrl=bool(modifiers & Qt.KeyboardModifier.ControlModifier),
        shift=shift,
        alt=bool(modifiers & Qt.KeyboardModifier.AltModifier),
        meta=bool(modifiers & Qt.KeyboardModifier.MetaModifier),
        in_text_field=in_text_field,
    )


class HotkeyBridge(QObject):
    """Carries hotkey callbacks from the pynput thread onto the Qt thread."""

    action_triggered = pyqtSignal(str, int)
    lock_triggered = pyqtSignal()

    def emit_action(self, action: str, index: int) -> None:
        self.action_triggered.emit(action, int(index))

    def emit_lock(self) -> None:
        self.lock_triggered.emit()


class QtWindowHost:
    """``WindowHost`` over a top-level QWidget; sizes are physical pixels."""

    def __init__(self, widget: QWidget) -> None:
        self._widget = widget
        self._resizable = True

    def scale_factor(self) -> float:
        return float(self._widget.devicePixelRatioF())

    def current_size(self) -> Tuple[int, int]:
        scale = self.scale_factor()
        return (
            int(round(self._widget.width() * scale)),
            int(round(self._widget.height() * scale)),
        )

    def resize(self, width: int, height: int) -> None:
        scale = self.scale_factor() or 1.0
        logical_w = max(1, int(round(width / scale)))
        logical_h = max(1, int(round(height / scale)))
        if self._resizable:
            self._widget.resize(logical_w, logical_h)
        else:
            self._widget.setFixedSize(logical_w, logical_h)

    def set_resizable(self, resizable: bool) -> None:
        self._resizable = resizable
        if resizable:
            self._widget.setMinimumSize(0, 0)
            self._widget.setMaximumSize(QWIDGETSIZE_MAX, QWIDGETSIZE_MAX)
        else:
            self._widget.setFixedSize(self._widget.size())

    def set_ignore_cursor_events(self, ignore: bool) -> None:
        widget = self._widget
        was_visible = widget.isVisible()
        widget.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, ignore)
        widget.setWindowFlag(Qt.WindowType.WindowTransparentForInput, ignore)
        widget.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, True)
        widget.setWindowFlag(Qt.WindowType.FramelessWindowHint, True)
        # setWindowFlag hides the widget
        if was_visible:
            widget.show()
            widget.raise_()

    def start_drag(self) -> None:
        handle = self._widget.windowHandle()
        if handle is None:
            raise RuntimeError("window handle unavailable")
        if not handle.startSystemMove():
            raise RuntimeError("system move not supported")

    def minimize(self) -> None:
        self._widget.showMinimized()

    def close(self) -> None:
        self._widget.close()
