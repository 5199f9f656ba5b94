from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from chronoghost.logging_utils import (
    LOG_FILENAME,
    PACKAGE_LOGGER_NAME,
    build_rotating_file_handler,
    configure_logging,
    resolve_log_level,
    resolve_logs_dir,
)


@pytest.fixture(autouse=True)
def _restore_package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


def test_env_override_wins(monkeypatch, tmp_path) -> None:
    target = tmp_path / "custom-logs"
    monkeypatch.setenv("CHRONOGHOST_LOG_DIR", str(target))

    assert resolve_logs_dir() == target
    assert target.is_dir()


def test_rotating_handler_retention(tmp_path) -> None:
    handler = build_rotating_file_handler(tmp_path, "x.log", retention=3, max_bytes=1024)
    try:
        assert isinstance(handler, RotatingFileHandler)
        assert handler.backupCount == 2
        assert handler.maxBytes == 1024
    finally:
        handler.close()


def test_resolve_log_level() -> None:
    assert resolve_log_level(True) == logging.DEBUG
    assert resolve_log_level(False) == logging.INFO


def test_configure_logging_writes_package_records(tmp_path) -> None:
    logger = configure_logging(debug=True, log_dir=tmp_path, console=False)
    logging.getLogger("ChronoGhost.Dispatch").debug("lock hotkey accepted")
    for handler in logger.handlers:
        handler.flush()

    text = (tmp_path / LOG_FILENAME).read_text(encoding="utf-8")
    assert "ChronoGhost.Dispatch: lock hotkey accepted" in text
    assert logger.level == logging.DEBUG


def test_configure_logging_replaces_its_own_handlers(tmp_path) -> None:
    configure_logging(log_dir=tmp_path, console=True)
    logger = configure_logging(log_dir=tmp_path, console=True)

    ours = [h for h in logger.handlers if getattr(h, "_chronoghost_handler", False)]
    assert len(ours) == 2
    assert logger.level == logging.INFO
