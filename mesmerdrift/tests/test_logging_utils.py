"""Tests for centralized logging configuration."""

import logging
from pathlib import Path

from mesmerdrift.logging_utils import (
    LogMode,
    get_log_mode,
    is_quiet_logging_enabled,
    is_trace_logging_enabled,
    set_log_mode,
    setup_logging,
)


def test_setup_logging_file_and_console_handlers(tmp_path: Path):
    log_file = tmp_path / "test.log"
    logger = setup_logging(
        level="DEBUG",
        log_file=str(log_file),
        json_format=False,
        add_console=True,
        logger_name="test_logging_utils.file_console",
    )
    logger.info("hello")
    kinds = {type(h).__name__ for h in logger.handlers}
    assert "RotatingFileHandler" in kinds
    assert "StreamHandler" in kinds
    assert log_file.exists()


def test_setup_logging_idempotent(tmp_path: Path):
    log_file = tmp_path / "test2.log"
    name = "test_logging_utils.idempotent"
    logger1 = setup_logging(level="INFO", log_file=str(log_file), logger_name=name)
    count = len(logger1.handlers)
    logger2 = setup_logging(level="WARNING", log_file=str(log_file), logger_name=name)
    assert logger1 is logger2
    assert len(logger2.handlers) == count
    assert logger2.level == logging.WARNING


def test_log_mode_helpers_roundtrip():
    set_log_mode(LogMode.TRACE)
    assert get_log_mode() is LogMode.TRACE
    assert is_trace_logging_enabled() is True
    set_log_mode("quiet")
    assert get_log_mode() is LogMode.QUIET
    assert is_quiet_logging_enabled() is True
    assert set_log_mode("nonsense") is LogMode.NORMAL
    # Reset to default to avoid leaking state into other tests
    set_log_mode(LogMode.NORMAL)


def test_setup_logging_trace_forces_debug(tmp_path: Path):
    logger = setup_logging(
        level="INFO",
        log_file=str(tmp_path / "trace.log"),
        log_mode=LogMode.TRACE,
        logger_name="test_logging_utils.trace",
    )
    assert logger.level == logging.DEBUG
    set_log_mode(LogMode.NORMAL)


def test_quiet_mode_raises_console_level(tmp_path: Path):
    logger = setup_logging(
        level="INFO",
        log_file=str(tmp_path / "quiet.log"),
        log_mode=LogMode.QUIET,
        logger_name="test_logging_utils.quiet",
    )
    console = [h for h in logger.handlers if type(h) is logging.StreamHandler]
    assert console and console[0].level == logging.WARNING
    set_log_mode(LogMode.NORMAL)


def _lines(path: Path) -> str:
    for handler in logging.getLogger("test_logging_utils.ticks").handlers:
        handler.flush()
    return path.read_text(encoding="utf-8")


def test_tick_lines_filtered_unless_traced(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("MESMERDRIFT_TICK_TRACE", raising=False)
    set_log_mode(LogMode.NORMAL)
    log_file = tmp_path / "ticks.log"
    logger = setup_logging(
        level="DEBUG",
        log_file=str(log_file),
        add_console=False,
        logger_name="test_logging_utils.ticks",
    )
    logger.debug("[tick] [session] 1.00min")
    logger.debug("[phase] Drifting")
    text = _lines(log_file)
    assert "[phase] Drifting" in text
    assert "[tick]" not in text

    monkeypatch.setenv("MESMERDRIFT_TICK_TRACE", "1")
    logger.debug("[tick] [session] 2.00min")
    assert "[tick] [session] 2.00min" in _lines(log_file)
