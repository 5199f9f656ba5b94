"""Frameless always-on-top window holding the toolbar and the timer cards."""
from __future__ import annotations

import logging
import sys
from typing import Dict, List, Optional

from PyQt6.QtCore import QPoint, Qt, QTimer
from PyQt6.QtGui import QFont
from PyQt6.QtWidgets import (
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLayout,
    QLineEdit,
    QMenu,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from chronoghost.dispatch import DispatchCoordinator
from chronoghost.geometry import CARD_GAP, CARD_WIDTH, PADDING_LEFT, PADDING_RIGHT, measure_toolbar_physical_width
from chronoghost.palette import border_colour, colour_for_position
from chronoghost.qt_adapters import qt_key_to_event
from chronoghost.timer_engine import MAX_NAME_LENGTH, Timer
from chronoghost.window_controller import HitRegion, WindowController

_LOGGER = logging.getLogger("ChronoGhost.Window")

HIT_REGION_PROPERTY = "hitRegion"
OPACITY_WHEEL_STEP = 0.05
EXPAND_BUTTON_MARGIN = 4
BINDING_ACTION_TITLES = (("toggle", "Start/Pause"), ("reset", "Reset"))

_WINDOW_STYLE = """
QWidget#overlayRoot { background: rgba(17, 17, 27, 235); border-radius: 10px; }
QFrame#toolbar { background: rgba(255, 255, 255, 18); border-radius: 8px; }
QFrame#timerCard { background: rgba(255, 255, 255, 12); border-radius: 8px; border: 1px solid transparent; }
QFrame#timerCard[selected="true"] { background: rgba(255, 255, 255, 28); }
QFrame#timerCard[finished="true"] { background: rgba(244, 63, 94, 90); }
QPushButton { color: #e5e7eb; background: rgba(255, 255, 255, 20); border: none; border-radius: 4px; padding: 2px 6px; }
QPushButton:hover { background: rgba(255, 255, 255, 45); }
QPushButton:disabled { color: #6b7280; }
QLineEdit { color: #f9fafb; background: transparent; border: none; font-weight: 600; }
QLabel#timeLabel { color: #f9fafb; }
QLabel#statusLabel { color: #f9fafb; background: rgba(0, 0, 0, 190); border-radius: 6px; padding: 4px 10px; }
"""


def _mark(widget: QWidget, region: HitRegion) -> QWidget:
    widget.setProperty(HIT_REGION_PROPERTY, region.value)
    return widget


def _button(text: str, tooltip: str = "") -> QPushButton:
    button = QPushButton(text)
    button.setFocusPolicy(Qt.FocusPolicy.NoFocus)
    if tooltip:
        button.setToolTip(tooltip)
    return _mark(button, HitRegion.CONTROL)  # type: ignore[return-value]


class TimerCard(QFrame):
    """One timer: name, remaining time, step buttons, start/pause and reset."""

    def __init__(self, window: "OverlayWindow", timer_id: str) -> None:
        super().__init__()
        self._window = window
        self.timer_id = timer_id
        self._colour = ""
        self.setObjectName("timerCard")
        self.setFixedWidth(CARD_WIDTH)
        _mark(self, HitRegion.TIMER_CARD)

        self.name_edit = QLineEdit()
        self.name_edit.setMaxLength(MAX_NAME_LENGTH)
        self.name_edit.editingFinished.connect(self._commit_name)
        _mark(self.name_edit, HitRegion.CONTROL)
        self.remove_button = _button("×", "Remove timer")
        self.remove_button.clicked.connect(lambda: window.remove_timer(self.timer_id))
        self.keys_button = _button("⌨", "Keybinds for this position")
        self.keys_button.clicked.connect(lambda: window.show_timer_binding_menu(self.timer_id, self.keys_button))

        header = QHBoxLayout()
        header.addWidget(self.name_edit, 1)
        header.addWidget(self.keys_button)
        header.addWidget(self.remove_button)

        self.time_label = QLabel("00:00")
        self.time_label.setObjectName("timeLabel")
        self.time_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        time_font = QFont()
        time_font.setPointSize(26)
        time_font.setWeight(QFont.Weight.Bold)
        self.time_label.setFont(time_font)

        self.adjust_buttons: List[QPushButton] = []
        adjust_row = QHBoxLayout()
        for text, unit, delta in (("−m", "minutes", -1), ("+m", "minutes", 1), ("−s", "seconds", -1), ("+s", "seconds", 1)):
            button = _button(text)
            button.clicked.connect(lambda _checked=False, u=unit, d=delta: window.adjust_timer(self.timer_id, u, d))
            adjust_row.addWidget(button)
            self.adjust_buttons.append(button)

        self.toggle_button = _button("Start")
        self.toggle_button.clicked.connect(lambda: window.toggle_timer(self.timer_id))
        self.reset_button = _button("Reset")
        self.reset_button.clicked.connect(lambda: window.reset_timer(self.timer_id))
        controls = QHBoxLayout()
        controls.addWidget(self.toggle_button)
        controls.addWidget(self.reset_button)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 6, 8, 8)
        layout.setSpacing(4)
        layout.addLayout(header)
        layout.addWidget(self.time_label)
        layout.addLayout(adjust_row)
        layout.addLayout(controls)

    def update_from(self, timer: Timer, position: int, *, selected: bool, removable: bool) -> None:
        colour = colour_for_position(position)
        if not self.name_edit.hasFocus() and self.name_edit.text() != timer.name:
            self.name_edit.setText(timer.name)
        if colour != self._colour:
            self._colour = colour
            self.name_edit.setStyleSheet(f"color: {colour};")
            self.setStyleSheet(f"QFrame#timerCard {{ border-color: {border_colour(colour)}; }}")
        self.time_label.setText(timer.display)
        self.toggle_button.setText("Pause" if timer.is_running else "Start")
        self.toggle_button.setEnabled(timer.is_running or not timer.is_depleted)
        for button in self.adjust_buttons:
            button.setEnabled(not timer.is_running)
        self.remove_button.setVisible(removable)
        changed = False
        for name, value in (("selected", selected), ("finished", timer.has_finished)):
            text = "true" if value else "false"
            if self.property(name) != text:
                self.setProperty(name, text)
                changed = True
        if changed:
            self.style().unpolish(self)
            self.style().polish(self)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        self._window.select_timer(self.timer_id)
        super().mousePressEvent(event)

    def _commit_name(self) -> None:
        self._window.rename_timer(self.timer_id, self.name_edit.text())


class OverlayWindow(QWidget):
    """Top-level overlay; every action is routed through the coordinator."""

    def __init__(self, primary_symbol: str = "Ctrl") -> None:
        super().__init__()
        self._primary_symbol = primary_symbol
        self._coordinator: Optional[DispatchCoordinator] = None
        self._window_controller: Optional[WindowController] = None
        self._cards: Dict[str, TimerCard] = {}
        self._card_order: List[str] = []

        self.setObjectName("overlayRoot")
        self.setWindowTitle("ChronoGhost")
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        window_flags = Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint | Qt.WindowType.Window
        if not sys.platform.startswith("linux"):
            window_flags |= Qt.WindowType.Tool
        self.setWindowFlags(window_flags)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setStyleSheet(_WINDOW_STYLE)

        self.toolbar = QFrame()
        self.toolbar.setObjectName("toolbar")
        _mark(self.toolbar, HitRegion.TOOLBAR)
        self.add_button = _button("+", "Add timer")
        self.lock_button = _button("🔓", "Lock position")
        self.mute_button = _button("🔊", "Mute completion sounds")
        self.collapse_button = _button("◀", "Hide toolbar")
        self.minimize_button = _button("–", "Minimize")
        self.close_button = _button("✕", "Close")
        self.keys_button = _button("⌨", "Keybinds for the selected timer")
        self.add_button.clicked.connect(self.add_timer)
        self.keys_button.clicked.connect(lambda: self.show_binding_menu(self.keys_button, None))
        self.lock_button.clicked.connect(self.toggle_pin)
        self.mute_button.clicked.connect(self.toggle_muted)
        self.collapse_button.clicked.connect(self.toggle_toolbar)
        self.minimize_button.clicked.connect(self._minimize)
        self.close_button.clicked.connect(self._close)
        grid = QGridLayout(self.toolbar)
        grid.setContentsMargins(4, 4, 4, 4)
        grid.setSpacing(4)
        for index, button in enumerate(
            (
                self.add_button,
                self.lock_button,
                self.mute_button,
                self.keys_button,
                self.collapse_button,
                self.minimize_button,
                self.close_button,
            )
        ):
            grid.addWidget(button, index // 2, index % 2)

        # Floats over the card row; not part of the layout minimum.
        self.expand_button = _button("▶", "Show toolbar")
        self.expand_button.setParent(self)
        self.expand_button.clicked.connect(self.expand_toolbar)
        self.expand_button.hide()

        self.cards_row = QHBoxLayout()
        self.cards_row.setContentsMargins(PADDING_LEFT, 10, PADDING_RIGHT, 10)
        self.cards_row.setSpacing(CARD_GAP)
        self.cards_row.addStretch(1)

        root = QHBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        root.setSpacing(0)
        # Width comes from WindowController.resize_for, never from the layout minimum.
        root.setSizeConstraint(QLayout.SizeConstraint.SetNoConstraint)
        root.addWidget(self.toolbar, 0, Qt.AlignmentFlag.AlignTop)
        root.addLayout(self.cards_row, 1)

        self.status_label = QLabel("", self)
        self.status_label.setObjectName("statusLabel")
        self.status_label.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self.status_label.hide()

    # ---------------------------------------------------------------- wiring

    def bind(self, coordinator: DispatchCoordinator, window_controller: WindowController) -> None:
        self._coordinator = coordinator
        self._window_controller = window_controller
        self.refresh()

    @property
    def coordinator(self) -> DispatchCoordinator:
        if self._coordinator is None:
            raise RuntimeError("OverlayWindow used before bind()")
        return self._coordinator

    # ------------------------------------------------------------- rendering

    def refresh(self) -> None:
        if self._coordinator is None:
            return
        state = self._coordinator.state
        timers = state.engine.timers
        ids = [timer.id for timer in timers]
        if ids != self._card_order:
            self._rebuild_cards(ids)
        removable = len(timers) > 1
        for position, timer in enumerate(timers):
            self._cards[timer.id].update_from(
                timer,
                position,
                selected=timer.id == state.engine.selected_id,
                removable=removable,
            )
        self.lock_button.setText("🔒" if state.pinned else "🔓")
        self.mute_button.setText("🔇" if state.muted else "🔊")
        self.toolbar.setVisible(not state.toolbar_collapsed)
        self._update_expand_button(state.pinned, state.toolbar_collapsed)
        self.collapse_button.setEnabled(not state.pinned)
        self.setWindowOpacity(state.opacity)

    def _rebuild_cards(self, ids: List[str]) -> None:
        for timer_id in list(self._cards):
            if timer_id not in ids:
                card = self._cards.pop(timer_id)
                self.cards_row.removeWidget(card)
                card.deleteLater()
        for timer_id in ids:
            card = self._cards.get(timer_id)
            if card is None:
                card = TimerCard(self, timer_id)
                self._cards[timer_id] = card
            self.cards_row.removeWidget(card)
        for index, timer_id in enumerate(ids):
            self.cards_row.insertWidget(index, self._cards[timer_id])
        self._card_order = list(ids)

    def show_status(self, message: str) -> None:
        self.status_label.setText(message)
        self.status_label.adjustSize()
        self._place_status()
        self.status_label.show()
        self.status_label.raise_()

    def hide_status(self) -> None:
        self.status_label.hide()

    def _place_status(self) -> None:
        label = self.status_label
        x = max(0, (self.width() - label.width()) // 2)
        y = max(0, self.height() - label.height() - 6)
        label.move(QPoint(x, y))

    def _update_expand_button(self, pinned: bool, collapsed: bool) -> None:
        button = self.expand_button
        if pinned:
            button.setText("🔒")
            button.setToolTip(f"Locked - Press {self._primary_symbol}+Shift+L to unlock")
        else:
            button.setText("▶")
            button.setToolTip("Show toolbar")
        button.adjustSize()
        button.move(EXPAND_BUTTON_MARGIN, EXPAND_BUTTON_MARGIN)
        button.setVisible(collapsed)
        if collapsed:
            button.raise_()

    def measure_toolbar(self) -> None:
        if self._window_controller is None:
            return
        css_width = self.toolbar.sizeHint().width()
        physical = measure_toolbar_physical_width(css_width, self.devicePixelRatioF())
        _LOGGER.debug("Toolbar measured: css=%dpx physical=%dpx", css_width, physical)
        self._window_controller.set_toolbar_width(physical)
        self.coordinator.refresh_geometry()

    # --------------------------------------------------------------- actions

    def select_timer(self, timer_id: str) -> None:
        self.coordinator.state.engine.select(timer_id)

    def toggle_timer(self, timer_id: str) -> None:
        engine = self.coordinator.state.engine
        engine.select(timer_id)
        engine.toggle(timer_id)

    def reset_timer(self, timer_id: str) -> None:
        engine = self.coordinator.state.engine
        engine.select(timer_id)
        engine.reset(timer_id)

    def adjust_timer(self, timer_id: str, unit: str, delta: int) -> None:
        self.coordinator.state.engine.adjust(timer_id, unit, delta)

    def rename_timer(self, timer_id: str, name: str) -> None:
        self.coordinator.state.engine.rename(timer_id, name)

    def add_timer(self) -> None:
        self.coordinator.add_timer()
        self.refresh()

    def remove_timer(self, timer_id: str) -> None:
        self.coordinator.remove_timer(timer_id)
        self.refresh()

    def toggle_pin(self) -> None:
        self.coordinator.toggle_pin()
        self.refresh()

    def toggle_muted(self) -> None:
        self.coordinator.set_muted(not self.coordinator.state.muted)
        self.refresh()

    def toggle_toolbar(self) -> None:
        if self.coordinator.toggle_toolbar():
            self.refresh()

    def expand_toolbar(self) -> None:
        if self.coordinator.expand_toolbar():
            self.refresh()

    def position_of(self, timer_id: str) -> Optional[int]:
        try:
            return self._card_order.index(timer_id)
        except ValueError:
            return None

    def binding_menu(self, slot: Optional[int]) -> QMenu:
        """Rebind/clear entries for one slot, or the selected pair when ``slot`` is None."""

        menu = QMenu(self)
        coordinator = self.coordinator
        enabled = slot is None or (0 <= slot < len(coordinator.state.keybinds.slots))
        for action, title in BINDING_ACTION_TITLES:
            current = coordinator.binding_at(slot, action)
            label = current.label if current else "Not set"
            rebind = menu.addAction(f"{title}: {label}")
            rebind.setEnabled(enabled)
            rebind.triggered.connect(lambda _checked=False, a=action: self.begin_capture(slot, a))
        menu.addSeparator()
        for action, title in BINDING_ACTION_TITLES:
            clear = menu.addAction(f"Clear {title}")
            clear.setEnabled(enabled and coordinator.binding_at(slot, action) is not None)
            clear.triggered.connect(lambda _checked=False, a=action: self.clear_binding(slot, a))
        return menu

    def show_binding_menu(self, anchor: QWidget, slot: Optional[int]) -> None:
        if self._coordinator is None:
            return
        menu = self.binding_menu(slot)
        menu.exec(anchor.mapToGlobal(QPoint(0, anchor.height())))
        menu.deleteLater()

    def show_timer_binding_menu(self, timer_id: str, anchor: QWidget) -> None:
        position = self.position_of(timer_id)
        if position is not None:
            self.show_binding_menu(anchor, position)

    def begin_capture(self, slot: Optional[int], action: str) -> bool:
        if not self.coordinator.begin_capture(slot, action):
            return False
        focused = self.focusWidget()
        if isinstance(focused, QLineEdit):
            focused.clearFocus()
        self.setFocus()
        return True

    def clear_binding(self, slot: Optional[int], action: str) -> None:
        self.coordinator.clear_binding(slot, action)

    def _minimize(self) -> None:
        if self._window_controller is not None:
            self._window_controller.minimize()

    def _close(self) -> None:
        if self._window_controller is not None:
            self._window_controller.close()

    # ---------------------------------------------------------------- events

    def hit_region_at(self, pos: QPoint) -> HitRegion:
        widget = self.childAt(pos)
        while widget is not None and widget is not self:
            value = widget.property(HIT_REGION_PROPERTY)
            if value:
                try:
                    return HitRegion(value)
                except ValueError:
                    break
            widget = widget.parentWidget()
        return HitRegion.BACKGROUND

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if self._coordinator is None:
            super().keyPressEvent(event)
            return
        if self._coordinator.capturing:
            self._coordinator.handle_capture_key(qt_key_to_event(event))
            event.accept()
            return
        in_text_field = isinstance(self.focusWidget(), QLineEdit)
        if self._coordinator.handle_key_event(qt_key_to_event(event, in_text_field=in_text_field)):
            event.accept()
            return
        super().keyPressEvent(event)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.MouseButton.LeftButton and self._coordinator is not None:
            region = self.hit_region_at(event.position().toPoint())
            if self._coordinator.drag_requested(region):
                event.accept()
                return
        super().mousePressEvent(event)

    def wheelEvent(self, event) -> None:  # type: ignore[override]
        if self._coordinator is None or self.hit_region_at(event.position().toPoint()) is not HitRegion.TOOLBAR:
            super().wheelEvent(event)
            return
        step = OPACITY_WHEEL_STEP if event.angleDelta().y() > 0 else -OPACITY_WHEEL_STEP
        self._coordinator.set_opacity(self._coordinator.state.opacity + step)
        self.refresh()
        event.accept()

    def showEvent(self, event) -> None:  # type: ignore[override]
        super().showEvent(event)
        QTimer.singleShot(0, self.measure_toolbar)

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        if self.status_label.isVisible():
            self._place_status()
