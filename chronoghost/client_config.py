"""Configuration helpers for the ChronoGhost overlay."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

CONFIG_DIR_ENV_VAR = "CHRONOGHOST_CONFIG_DIR"
DEBUG_ENV_VAR = "CHRONOGHOST_DEBUG"
SETTINGS_FILENAME = "settings.json"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class InitialClientSettings:
    """Values read once at startup, before the window is built."""

    log_retention: int = 5
    debug: bool = False
    snapshot_debounce_seconds: float = 1.0
    lock_debounce_ms: int = 300


def _env_flag(name: str, env: Optional[Mapping[str, str]] = None) -> bool:
    source = os.environ if env is None else env
    return str(source.get(name, "")).strip().lower() in _TRUTHY


def resolve_config_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    source = os.environ if env is None else env
    override = source.get(CONFIG_DIR_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "chronoghost"


def load_initial_settings(
    settings_path: Path,
    env: Optional[Mapping[str, str]] = None,
) -> InitialClientSettings:
    """Read bootstrap settings from settings.json; bad fields keep their defaults."""
    defaults = InitialClientSettings()
    data: Dict[str, Any] = {}
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        raw = ""
    if raw:
        try:
            loaded = json.loads(raw)
        except json.JSONDecodeError:
            loaded = {}
        if isinstance(loaded, dict):
            data = loaded

    retention = defaults.log_retention
    try:
        retention = int(data.get("log_retention", retention))
    except (TypeError, ValueError):
        retention = defaults.log_retention

    debounce = defaults.snapshot_debounce_seconds
    try:
        debounce = float(data.get("snapshot_debounce_seconds", debounce))
    except (TypeError, ValueError):
        debounce = defaults.snapshot_debounce_seconds
    if debounce != debounce or debounce < 0:
        debounce = defaults.snapshot_debounce_seconds

    lock_debounce = defaults.lock_debounce_ms
    try:
        lock_debounce = int(data.get("lock_debounce_ms", lock_debounce))
    except (TypeError, ValueError):
        lock_debounce = defaults.lock_debounce_ms

    debug = data.get("debug", defaults.debug)
    debug = debug if isinstance(debug, bool) else defaults.debug
    if _env_flag(DEBUG_ENV_VAR, env):
        debug = True

    return InitialClientSettings(
        log_retention=max(1, retention),
        debug=debug,
        snapshot_debounce_seconds=debounce,
        lock_debounce_ms=max(0, lock_debounce),
    )
