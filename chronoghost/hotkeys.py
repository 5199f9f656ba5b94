"""OS-global hotkey registration for timer actions and the lock toggle.

Registration is replaced wholesale whenever the keybind set changes: under one
lock the registry unregisters everything, then registers the new set, so no
caller ever observes a mix of two sets. pynput delivers callbacks on its own
listener thread; the Qt layer forwards them to the GUI thread.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from chronoghost.keybinds import SHIFTED_DIGITS, Keybind, KeybindSet, MAX_SLOTS

_LOGGER = logging.getLogger("ChronoGhost.Hotkeys")

PRIMARY_TOKEN = "CommandOrControl"
LOCK_HOTKEY = f"{PRIMARY_TOKEN}+Shift+L"

ACTION_TOGGLE = "toggle"
ACTION_RESET = "reset"
ACTION_TOGGLE_SELECTED = "toggle-selected"
ACTION_RESET_SELECTED = "reset-selected"
ACTION_LOCK = "toggle-lock"

_KEY_TOKENS = {
    " ": "Space",
    "ArrowUp": "Up",
    "ArrowDown": "Down",
    "ArrowLeft": "Left",
    "ArrowRight": "Right",
    "Escape": "Escape",
}


class HotkeyBackend(Protocol):
    def register_global_hotkey(self, spec: str, handler: Callable[[], None]) -> None: ...

    def unregister_all_global_hotkeys(self) -> None: ...

    def commit(self) -> None: ...


@dataclass(frozen=True)
class HotkeyRegistration:
    spec: str
    action: str
    index: int = 0


def key_token(key: str) -> str:
    if key in _KEY_TOKENS:
        return _KEY_TOKENS[key]
    if len(key) == 1:
        return key.upper()
    return key[:1].upper() + key[1:]


def hotkey_spec(keybind: Optional[Keybind]) -> Optional[str]:
    """Join modifiers in fixed order (primary, Shift, Alt) then the key token."""

    if keybind is None or not keybind.key:
        return None
    parts: List[str] = []
    if "ctrl" in keybind.modifiers:
        parts.append(PRIMARY_TOKEN)
    if "shift" in keybind.modifiers:
        parts.append("Shift")
    if "alt" in keybind.modifiers:
        parts.append("Alt")
    parts.append(key_token(keybind.key))
    return "+".join(parts)


def build_registrations(keybinds: Optional[KeybindSet]) -> List[HotkeyRegistration]:
    """Expand a keybind set into the registrations for one replacement pass.

    Bindings without modifiers are skipped so a bare key is never captured
    system-wide. The lock hotkey is always included.
    """
    entries: List[HotkeyRegistration] = []
    if keybinds is not None:
        for index, slot in enumerate(keybinds.slots[:MAX_SLOTS]):
            for action, keybind in ((ACTION_TOGGLE, slot.toggle), (ACTION_RESET, slot.reset)):
                if keybind is None or not keybind.modifiers:
                    continue
                spec = hotkey_spec(keybind)
                if spec:
                    entries.append(HotkeyRegistration(spec, action, index))
        for action, keybind in (
            (ACTION_TOGGLE_SELECTED, keybinds.selected.toggle),
            (ACTION_RESET_SELECTED, keybinds.selected.reset),
        ):
            if keybind is None or not keybind.modifiers:
                continue
            spec = hotkey_spec(keybind)
            if spec:
                entries.append(HotkeyRegistration(spec, action, 0))
    entries.append(HotkeyRegistration(LOCK_HOTKEY, ACTION_LOCK, 0))
    return entries


class HotkeyRegistry:
    """Serialised unregister-all / register-all replacement of global hotkeys."""

    def __init__(
        self,
        backend: HotkeyBackend,
        *,
        on_action: Callable[[str, int], None],
        on_lock: Callable[[], None],
    ) -> None:
        self._backend = backend
        self._on_action = on_action
        self._on_lock = on_lock
        self._lock = threading.Lock()
        self._registered: Tuple[HotkeyRegistration, ...] = ()

    def registered(self) -> Tuple[HotkeyRegistration, ...]:
        with self._lock:
            return self._registered

    def replace(self, keybinds: Optional[KeybindSet]) -> Tuple[HotkeyRegistration, ...]:
        entries = build_registrations(keybinds)
        with self._lock:
            self._registered = ()
            try:
                self._backend.unregister_all_global_hotkeys()
            except Exception as exc:
                _LOGGER.debug("Unregistering global hotkeys failed: %s", exc)
            accepted: List[HotkeyRegistration] = []
            seen: Dict[str, HotkeyRegistration] = {}
            for entry in entries:
                if entry.spec in seen:
                    _LOGGER.debug(
                        "Skipping duplicate hotkey %s for %s[%d]; already bound to %s[%d]",
                        entry.spec,
                        entry.action,
                        entry.index,
                        seen[entry.spec].action,
                        seen[entry.spec].index,
                    )
                    continue
                try:
                    self._backend.register_global_hotkey(entry.spec, self._handler_for(entry))
                except Exception as exc:
                    _LOGGER.debug("Registering hotkey %s failed: %s", entry.spec, exc)
                    continue
                seen[entry.spec] = entry
                accepted.append(entry)
            try:
                self._backend.commit()
            except Exception as exc:
                _LOGGER.debug("Activating global hotkeys failed: %s", exc)
            self._registered = tuple(accepted)
        _LOGGER.debug("Global hotkeys registered: %s", ", ".join(item.spec for item in accepted) or "none")
        return self._registered

    def clear(self) -> None:
        with self._lock:
            self._registered = ()
            try:
                self._backend.unregister_all_global_hotkeys()
            except Exception as exc:
                _LOGGER.debug("Unregistering global hotkeys failed: %s", exc)

    def _handler_for(self, entry: HotkeyRegistration) -> Callable[[], None]:
        if entry.action == ACTION_LOCK:
            return self._on_lock
        action, index = entry.action, entry.index
        return lambda: self._on_action(action, index)


_PYNPUT_NAMED_KEYS = {
    "Space": "<space>",
    "Up": "<up>",
    "Down": "<down>",
    "Left": "<left>",
    "Right": "<right>",
    "Escape": "<esc>",
    "Enter": "<enter>",
    "Tab": "<tab>",
    "Backspace": "<backspace>",
    "Delete": "<delete>",
    "Home": "<home>",
    "End": "<end>",
    "PageUp": "<page_up>",
    "PageDown": "<page_down>",
    "Insert": "<insert>",
}


def to_pynput_hotkey(spec: str, primary: str = "<ctrl>") -> str:
    """Convert ``CommandOrControl+Shift+L`` style specs to pynput syntax."""

    out: List[str] = []
    for token in spec.split("+"):
        if token == PRIMARY_TOKEN:
            out.append(primary)
        elif token == "Shift":
            out.append("<shift>")
        elif token == "Alt":
            out.append("<alt>")
        elif token in _PYNPUT_NAMED_KEYS:
            out.append(_PYNPUT_NAMED_KEYS[token])
        elif len(token) > 1 and token[0] in "Ff" and token[1:].isdigit():
            out.append(f"<f{token[1:]}>")
        elif len(token) == 1:
            out.append(token.lower())
        elif token:
            out.append(f"<{token.lower()}>")
    return "+".join(out)


_DIGIT_SHIFTED = {digit: char for char, digit in SHIFTED_DIGITS.items()}


def shifted_digit_alias(combo: str) -> Optional[str]:
    """Return the combo as Xorg and macOS report Shift+digit, e.g. ``<ctrl>+<shift>+!``.

    pynput only lower-cases characters there, so a shifted digit arrives as the
    symbol it types. Windows maps scan codes back to the digit and never hits
    the alias.
    """
    tokens = combo.split("+")
    if "<shift>" not in tokens or tokens[-1] not in _DIGIT_SHIFTED:
        return None
    return "+".join(tokens[:-1] + [_DIGIT_SHIFTED[tokens[-1]]])


class PynputHotkeyBackend:
    """Backs the registry with one ``pynput.keyboard.GlobalHotKeys`` listener."""

    def __init__(self, *, primary: str = "<ctrl>") -> None:
        self._primary = primary
        self._mapping: Dict[str, Callable[[], None]] = {}
        self._listener = None

    def register_global_hotkey(self, spec: str, handler: Callable[[], None]) -> None:
        combo = to_pynput_hotkey(spec, self._primary)
        self._mapping[combo] = handler
        alias = shifted_digit_alias(combo)
        if alias is not None:
            self._mapping[alias] = handler

    def commit(self) -> None:
        if self._mapping:
            self._restart()

    def unregister_all_global_hotkeys(self) -> None:
        self._mapping.clear()
        self._stop_listener()

    def stop(self) -> None:
        self.unregister_all_global_hotkeys()

    def _restart(self) -> None:
        from pynput import keyboard

        self._stop_listener()
        listener = keyboard.GlobalHotKeys(dict(self._mapping))
        listener.daemon = True
        listener.start()
        self._listener = listener

    def _stop_listener(self) -> None:
        listener = self._listener
        self._listener = None
        if listener is None:
            return
        try:
            listener.stop()
        except Exception as exc:
            _LOGGER.debug("Stopping hotkey listener failed: %s", exc)
