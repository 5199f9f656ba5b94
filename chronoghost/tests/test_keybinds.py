from __future__ import annotations

import pytest

from chronoghost.keybinds import (
    MAX_SLOTS,
    BindingPair,
    Keybind,
    KeybindSet,
    KeyEvent,
    default_keybinds,
    format_label,
    matches,
    migrate_keybinds,
)


def test_default_keybinds_cover_nine_slots_and_selected_pair() -> None:
    keybinds = default_keybinds()

    assert len(keybinds.slots) == MAX_SLOTS
    first = keybinds.slots[0]
    assert first.toggle == Keybind("1", frozenset({"ctrl"}), "Ctrl+1")
    assert first.reset == Keybind("1", frozenset({"ctrl", "shift"}), "Ctrl+Shift+1")
    assert keybinds.slots[8].toggle.key == "9"
    assert keybinds.selected.toggle.label == "Ctrl+Space"
    assert keybinds.selected.reset.key == "r"
    assert keybinds.selected.reset.label == "Ctrl+R"


def test_default_labels_use_platform_symbol() -> None:
    keybinds = default_keybinds("⌘")
    assert keybinds.slots[2].reset.label == "⌘+Shift+3"


def test_default_keybinds_have_no_conflicts() -> None:
    signatures = [binding.signature for binding in default_keybinds().all_bindings()]
    assert len(signatures) == len(set(signatures)) == MAX_SLOTS * 2 + 2


def test_format_label_orders_modifiers_and_names_keys() -> None:
    assert format_label("ArrowUp", {"alt", "ctrl"}) == "Ctrl+Alt+↑"
    assert format_label("Escape", ()) == "Esc"
    assert format_label("F5", {"shift"}) == "Shift+F5"


def test_matches_requires_exact_modifier_set() -> None:
    binding = Keybind.create("1", ("ctrl",))

    assert matches(KeyEvent("1", ctrl=True), binding)
    assert not matches(KeyEvent("1", ctrl=True, shift=True), binding)
    assert not matches(KeyEvent("1"), binding)
    assert not matches(KeyEvent("2", ctrl=True), binding)


def test_matches_folds_meta_into_primary_modifier() -> None:
    binding = Keybind.create("r", ("ctrl",))
    assert matches(KeyEvent("r", meta=True), binding)


def test_matches_is_case_sensitive_and_none_never_matches() -> None:
    binding = Keybind.create("r", ("ctrl",))

    assert not matches(KeyEvent("R", ctrl=True), binding)
    assert not matches(KeyEvent("r", ctrl=True), None)


def test_keybind_from_dict_normalises_modifiers() -> None:
    binding = Keybind.from_dict({"key": "x", "modifiers": ["Control", "shift", "hyper"]})

    assert binding is not None
    assert binding.modifiers == frozenset({"ctrl", "shift"})
    assert binding.label == "Ctrl+Shift+X"
    assert Keybind.from_dict({"key": "", "modifiers": ["ctrl"]}) is None
    assert Keybind.from_dict("ctrl+x") is None


def test_keybind_equality_for_conflicts_ignores_label() -> None:
    a = Keybind("1", frozenset({"ctrl"}), "Ctrl+1")
    b = Keybind("1", frozenset({"ctrl"}), "⌘+1")
    assert a.signature == b.signature


def test_keybind_set_serialises_in_storage_shape() -> None:
    keybinds = default_keybinds()
    payload = keybinds.to_dict()

    assert payload["timerSlots"][0]["slotNumber"] == 1
    assert payload["timerSlots"][0]["toggle"] == {"key": "1", "modifiers": ["ctrl"], "label": "Ctrl+1"}
    assert payload["selectedTimer"]["reset"]["modifiers"] == ["ctrl"]
    assert KeybindSet.from_dict(payload) == keybinds


def test_keybind_set_from_dict_drops_extra_slots_and_rejects_garbage() -> None:
    payload = default_keybinds().to_dict()
    payload["timerSlots"] = payload["timerSlots"] + payload["timerSlots"][:3]

    loaded = KeybindSet.from_dict(payload)

    assert loaded is not None
    assert len(loaded.slots) == MAX_SLOTS
    assert KeybindSet.from_dict({"timerSlots": "nope", "selectedTimer": {}}) is None
    assert KeybindSet.from_dict(None) is None


def test_replace_slot_returns_new_set() -> None:
    keybinds = default_keybinds()
    binding = Keybind.create("q", ("alt",))

    updated = keybinds.replace_slot(0, "toggle", binding)

    assert updated.slots[0].toggle == binding
    assert keybinds.slots[0].toggle.key == "1"
    with pytest.raises(IndexError):
        keybinds.replace_slot(MAX_SLOTS, "toggle", binding)


def test_binding_pair_rejects_unknown_action() -> None:
    with pytest.raises(ValueError):
        BindingPair().get("pause")


def test_migrate_replaces_legacy_function_keys_and_bare_reset() -> None:
    defaults = default_keybinds()
    legacy = KeybindSet(
        selected=BindingPair(toggle=defaults.selected.toggle, reset=Keybind.create("r")),
        slots=(
            BindingPair(toggle=Keybind.create("F1"), reset=Keybind.create("F1", ("shift",))),
            defaults.slots[1],
        ),
    )

    migrated, changed = migrate_keybinds(legacy, defaults)

    assert changed is True
    assert migrated.slots[0] == defaults.slots[0]
    assert migrated.slots[1] == defaults.slots[1]
    assert migrated.selected.reset == defaults.selected.reset


def test_migrate_leaves_current_bindings_alone() -> None:
    defaults = default_keybinds()
    migrated, changed = migrate_keybinds(defaults, defaults)

    assert changed is False
    assert migrated == defaults
