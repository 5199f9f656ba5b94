"""Keybind model, default binding sets, and key-event matching."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

MAX_SLOTS = 9
MODIFIER_ORDER: Tuple[str, ...] = ("ctrl", "shift", "alt")

_MODIFIER_ALIASES = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "meta": "ctrl",
    "cmd": "ctrl",
    "command": "ctrl",
    "super": "ctrl",
    "shift": "shift",
    "alt": "alt",
    "option": "alt",
}

_KEY_LABELS = {
    " ": "Space",
    "Escape": "Esc",
    "ArrowUp": "↑",
    "ArrowDown": "↓",
    "ArrowLeft": "←",
    "ArrowRight": "→",
}

_LEGACY_FKEY_RE = re.compile(r"^f\d$")

# Characters a US layout produces for Shift+digit.
SHIFTED_DIGITS: Dict[str, str] = dict(zip("!@#$%^&*()", "1234567890"))

Signature = Tuple[str, FrozenSet[str]]


def normalise_modifiers(raw: Optional[Iterable[object]]) -> FrozenSet[str]:
    modifiers = set()
    for item in raw or ():
        alias = _MODIFIER_ALIASES.get(str(item).strip().lower())
        if alias is not None:
            modifiers.add(alias)
    return frozenset(modifiers)


def format_label(key: str, modifiers: Iterable[str], primary_symbol: str = "Ctrl") -> str:
    """Build the human-readable form of a binding, e.g. ``Ctrl+Shift+1``."""

    mods = set(modifiers)
    parts: List[str] = []
    if "ctrl" in mods:
        parts.append(primary_symbol)
    if "shift" in mods:
        parts.append("Shift")
    if "alt" in mods:
        parts.append("Alt")
    if key in _KEY_LABELS:
        parts.append(_KEY_LABELS[key])
    elif len(key) == 1:
        parts.append(key.upper())
    else:
        parts.append(key)
    return "+".join(parts)


@dataclass(frozen=True)
class Keybind:
    """A key plus an exact modifier set; ``label`` is display-only."""

    key: str
    modifiers: FrozenSet[str] = frozenset()
    label: str = ""

    @classmethod
    def create(cls, key: str, modifiers: Iterable[str] = (), primary_symbol: str = "Ctrl") -> "Keybind":
        mods = normalise_modifiers(modifiers)
        return cls(key=key, modifiers=mods, label=format_label(key, mods, primary_symbol))

    @property
    def signature(self) -> Signature:
        return (self.key, self.modifiers)

    def ordered_modifiers(self) -> List[str]:
        return [name for name in MODIFIER_ORDER if name in self.modifiers]

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "modifiers": self.ordered_modifiers(), "label": self.label}

    @classmethod
    def from_dict(cls, payload: Any, primary_symbol: str = "Ctrl") -> Optional["Keybind"]:
        if not isinstance(payload, Mapping):
            return None
        key = payload.get("key")
        if not isinstance(key, str) or key == "":
            return None
        modifiers = payload.get("modifiers")
        mods = normalise_modifiers(modifiers if isinstance(modifiers, (list, tuple)) else ())
        label = payload.get("label")
        if not isinstance(label, str) or not label:
            label = format_label(key, mods, primary_symbol)
        return cls(key=key, modifiers=mods, label=label)


@dataclass(frozen=True)
class BindingPair:
    toggle: Optional[Keybind] = None
    reset: Optional[Keybind] = None

    def get(self, action: str) -> Optional[Keybind]:
        if action == "toggle":
            return self.toggle
        if action == "reset":
            return self.reset
        raise ValueError(f"Unknown binding action '{action}'")

    def with_binding(self, action: str, keybind: Optional[Keybind]) -> "BindingPair":
        self.get(action)
        return replace(self, **{action: keybind})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toggle": self.toggle.to_dict() if self.toggle else None,
            "reset": self.reset.to_dict() if self.reset else None,
        }

    @classmethod
    def from_dict(cls, payload: Any, primary_symbol: str = "Ctrl") -> "BindingPair":
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            toggle=Keybind.from_dict(payload.get("toggle"), primary_symbol),
            reset=Keybind.from_dict(payload.get("reset"), primary_symbol),
        )


@dataclass(frozen=True)
class KeybindSet:
    """Selected-timer bindings plus up to ``MAX_SLOTS`` positional slot bindings."""

    selected: BindingPair = field(default_factory=BindingPair)
    slots: Tuple[BindingPair, ...] = ()

    def __post_init__(self) -> None:
        if len(self.slots) > MAX_SLOTS:
            object.__setattr__(self, "slots", tuple(self.slots[:MAX_SLOTS]))

    def all_bindings(self) -> List[Keybind]:
        found: List[Keybind] = []
        for slot in self.slots:
            if slot.toggle:
                found.append(slot.toggle)
            if slot.reset:
                found.append(slot.reset)
        if self.selected.toggle:
            found.append(self.selected.toggle)
        if self.selected.reset:
            found.append(self.selected.reset)
        return found

    def replace_slot(self, index: int, action: str, keybind: Optional[Keybind]) -> "KeybindSet":
        if index < 0 or index >= len(self.slots):
            raise IndexError(f"Slot {index} out of range")
        slots = list(self.slots)
        slots[index] = slots[index].with_binding(action, keybind)
        return replace(self, slots=tuple(slots))

    def replace_selected(self, action: str, keybind: Optional[Keybind]) -> "KeybindSet":
        return replace(self, selected=self.selected.with_binding(action, keybind))

    def to_dict(self) -> Dict[str, Any]:
        slots = []
        for number, slot in enumerate(self.slots, start=1):
            entry = {"slotNumber": number}
            entry.update(slot.to_dict())
            slots.append(entry)
        return {"timerSlots": slots, "selectedTimer": self.selected.to_dict()}

    @classmethod
    def from_dict(cls, payload: Any, primary_symbol: str = "Ctrl") -> Optional["KeybindSet"]:
        if not isinstance(payload, Mapping):
            return None
        raw_slots = payload.get("timerSlots")
        raw_selected = payload.get("selectedTimer")
        if not isinstance(raw_slots, list) or not isinstance(raw_selected, Mapping):
            return None
        slots = tuple(BindingPair.from_dict(item, primary_symbol) for item in raw_slots[:MAX_SLOTS])
        return cls(selected=BindingPair.from_dict(raw_selected, primary_symbol), slots=slots)


def default_keybinds(primary_symbol: str = "Ctrl") -> KeybindSet:
    slots = tuple(
        BindingPair(
            toggle=Keybind.create(str(number), ("ctrl",), primary_symbol),
            reset=Keybind.create(str(number), ("ctrl", "shift"), primary_symbol),
        )
        for number in range(1, MAX_SLOTS + 1)
    )
    selected = BindingPair(
        toggle=Keybind.create(" ", ("ctrl",), primary_symbol),
        reset=Keybind.create("r", ("ctrl",), primary_symbol),
    )
    return KeybindSet(selected=selected, slots=slots)


def migrate_keybinds(keybinds: KeybindSet, defaults: KeybindSet) -> Tuple[KeybindSet, bool]:
    """Replace bindings from older releases (bare F-keys, unmodified reset) with defaults."""

    changed = False
    slots: List[BindingPair] = []
    for index, slot in enumerate(keybinds.slots):
        if index >= len(defaults.slots):
            slots.append(slot)
            continue
        default_slot = defaults.slots[index]
        migrated = slot
        if slot.toggle and _LEGACY_FKEY_RE.match(slot.toggle.key.lower()):
            migrated = migrated.with_binding("toggle", default_slot.toggle)
            changed = True
        if slot.reset and _LEGACY_FKEY_RE.match(slot.reset.key.lower()):
            migrated = migrated.with_binding("reset", default_slot.reset)
            changed = True
        slots.append(migrated)
    selected = keybinds.selected
    if selected.reset is not None and not selected.reset.modifiers:
        selected = selected.with_binding("reset", defaults.selected.reset)
        changed = True
    return KeybindSet(selected=selected, slots=tuple(slots)), changed


@dataclass(frozen=True)
class KeyEvent:
    """A key-down as delivered by the input layer."""

    key: str
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False
    in_text_field: bool = False

    @property
    def modifiers(self) -> FrozenSet[str]:
        mods = set()
        if self.ctrl or self.meta:
            mods.add("ctrl")
        if self.shift:
            mods.add("shift")
        if self.alt:
            mods.add("alt")
        return frozenset(mods)


def matches(event: KeyEvent, keybind: Optional[Keybind]) -> bool:
    """Exact match on key and normalised modifier set; ``None`` never matches."""

    if keybind is None:
        return False
    if event.key != keybind.key:
        return False
    return event.modifiers == keybind.modifiers
