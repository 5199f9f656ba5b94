from __future__ import annotations

import logging
import os
import sys
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER_NAME = "ChronoGhost"
LOG_DIR_ENV_VAR = "CHRONOGHOST_LOG_DIR"
LOG_FILENAME = "chronoghost.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ReleaseLogLevelFilter(logging.Filter):
    """Promote debug logs to INFO in release builds so diagnostics stay visible."""

    def __init__(self, release_mode: bool) -> None:
        super().__init__()
        self._release_mode = release_mode

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - logging shim
        if self._release_mode and record.levelno == logging.DEBUG:
            record.levelno = logging.INFO
            record.levelname = "INFO"
        return True


def resolve_logs_dir(log_dir_name: str = "ChronoGhost") -> Path:
    """
    Resolve the directory to store overlay logs.

    Strategy:
    - Use CHRONOGHOST_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        try:
            candidates.append(Path(env_override).expanduser())
        except Exception:
            pass

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / log_dir_name / "logs")
    candidates.append(cache_home / log_dir_name / "logs")
    candidates.append(Path.cwd() / "logs" / log_dir_name)

    for target in candidates:
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except Exception:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler; ``retention`` counts the live file."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_logging(
    *,
    debug: bool = False,
    retention: int = 5,
    log_dir: Optional[Path] = None,
    console: bool = True,
) -> logging.Logger:
    """Attach file (and optionally stderr) handlers to the package logger.

    Calling it again replaces the handlers it installed earlier.
    """
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_chronoghost_handler", False):
            logger.removeHandler(handler)
            try:
                handler.close()
            except Exception:
                pass
    for existing in list(logger.filters):
        if isinstance(existing, _ReleaseLogLevelFilter):
            logger.removeFilter(existing)

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)
    level = resolve_log_level(debug)
    logger.setLevel(level)
    logger.propagate = False

    target_dir = log_dir if log_dir is not None else resolve_logs_dir()
    try:
        file_handler = build_rotating_file_handler(
            target_dir,
            LOG_FILENAME,
            retention=retention,
            formatter=formatter,
        )
    except Exception as exc:
        sys.stderr.write(f"[chronoghost] file logging unavailable in {target_dir}: {exc}\n")
    else:
        file_handler._chronoghost_handler = True  # type: ignore[attr-defined]
        file_handler.addFilter(_ReleaseLogLevelFilter(release_mode=not debug))
        logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler._chronoghost_handler = True  # type: ignore[attr-defined]
        logger.addHandler(stream_handler)

    logger.debug("Logging configured: level=%s dir=%s", logging.getLevelName(level), target_dir)
    return logger
