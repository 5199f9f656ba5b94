from __future__ import annotations

import json
import logging

from chronoghost.keybinds import default_keybinds
from chronoghost.snapshot_store import SnapshotStore, parse_snapshot


def _timer(timer_id: str, **overrides) -> dict:
    payload = {
        "id": timer_id,
        "name": f"Timer {timer_id}",
        "minutes": 5,
        "seconds": 0,
        "initialMinutes": 5,
        "initialSeconds": 0,
        "isRunning": False,
        "hasFinished": False,
    }
    payload.update(overrides)
    return payload


def test_parse_snapshot_restores_all_fields() -> None:
    keybinds = default_keybinds().replace_slot(0, "toggle", None)
    raw = {
        "timers": [_timer("a"), _timer("b", isRunning=True)],
        "selectedTimerId": "b",
        "keybinds": keybinds.to_dict(),
        "opacity": 0.5,
        "muted": True,
    }

    parsed = parse_snapshot(raw)

    assert [timer.id for timer in parsed.timers] == ["a", "b"]
    assert parsed.timers[1].is_running is False
    assert parsed.selected_id == "b"
    assert parsed.keybinds == keybinds
    assert parsed.opacity == 0.5
    assert parsed.muted is True
    assert parsed.keybinds_migrated is False


def test_parse_snapshot_falls_back_per_field() -> None:
    raw = {
        "timers": [_timer("a"), {"name": "missing id"}, "junk", _timer("a")],
        "selectedTimerId": "nope",
        "keybinds": {"timerSlots": 3},
        "opacity": "loud",
        "muted": "yes",
    }

    parsed = parse_snapshot(raw)

    assert [timer.id for timer in parsed.timers] == ["a"]
    assert parsed.selected_id == "a"
    assert parsed.keybinds == default_keybinds()
    assert parsed.opacity == 0.85
    assert parsed.muted is False


def test_parse_snapshot_of_nothing_gives_defaults() -> None:
    parsed = parse_snapshot(None, "⌘")

    assert parsed.timers == []
    assert parsed.selected_id is None
    assert parsed.keybinds == default_keybinds("⌘")


def test_parse_snapshot_clamps_opacity_and_migrates_keybinds() -> None:
    legacy = default_keybinds().to_dict()
    legacy["timerSlots"][0]["toggle"] = {"key": "F1", "modifiers": [], "label": "F1"}

    parsed = parse_snapshot({"keybinds": legacy, "opacity": 0.05})

    assert parsed.opacity == 0.3
    assert parsed.keybinds_migrated is True
    assert parsed.keybinds.slots[0].toggle == default_keybinds().slots[0].toggle


def test_load_missing_or_corrupt_file_returns_none(tmp_path) -> None:
    path = tmp_path / "state.json"
    store = SnapshotStore(path, debounce_seconds=60)
    assert store.load() is None

    path.write_text("{not json", encoding="utf-8")
    assert store.load() is None

    path.write_text("[1, 2]", encoding="utf-8")
    assert store.load() is None


def test_flush_writes_latest_snapshot_atomically(tmp_path) -> None:
    path = tmp_path / "nested" / "state.json"
    store = SnapshotStore(path, debounce_seconds=60)

    store.save({"opacity": 0.5})
    store.save({"opacity": 0.6, "muted": True})
    assert store.has_pending()

    assert store.flush() is True

    assert json.loads(path.read_text(encoding="utf-8")) == {"opacity": 0.6, "muted": True}
    assert not (path.parent / "state.json.tmp").exists()
    assert not store.has_pending()
    assert store.load() == {"opacity": 0.6, "muted": True}


def test_save_copies_the_snapshot(tmp_path) -> None:
    store = SnapshotStore(tmp_path / "state.json", debounce_seconds=60)
    snapshot = {"timers": [{"id": "a"}]}

    store.save(snapshot)
    snapshot["timers"].append({"id": "b"})
    store.flush()

    assert store.load() == {"timers": [{"id": "a"}]}


def test_failed_write_keeps_snapshot_pending(tmp_path, caplog) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    logger = logging.getLogger("chronoghost_tests.snapshot")
    store = SnapshotStore(blocker / "state.json", debounce_seconds=60, logger=logger)

    store.save({"muted": True})
    with caplog.at_level(logging.DEBUG, logger="chronoghost_tests.snapshot"):
        assert store.flush() is False

    assert store.has_pending()
    assert "Failed to write snapshot" in caplog.text
