"""Logging setup shared by the CLI, run.py and embedding hosts.

One call to :func:`setup_logging` installs a rotating log file in the
per-user MesmerDrift folder plus a console stream. The engine logs with
bracketed subsystem tags (``[session]``, ``[phase]``, ``[burst]`` ...);
per-tick lines carry a ``[tick]`` tag and are dropped by every handler
unless trace mode is active or ``MESMERDRIFT_TICK_TRACE`` is set.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from .platform_paths import get_logs_dir


DEFAULT_LOG_FILENAME = "mesmerdrift.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUPS = 3

_PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%H:%M:%S"
_TICK_TRACE_FLAG = "MESMERDRIFT_TICK_TRACE"
_TRUTHY = {"1", "true", "yes", "on"}


class LogMode(str, Enum):
    """Verbosity presets selectable with ``--log-mode``."""

    QUIET = "quiet"    # console shows warnings and errors only
    NORMAL = "normal"
    TRACE = "trace"    # DEBUG everywhere, per-tick lines included


_active_mode: LogMode = LogMode.NORMAL


def set_log_mode(mode: LogMode | str | None) -> LogMode:
    """Record the active preset; unknown names fall back to NORMAL."""
    global _active_mode
    if isinstance(mode, LogMode):
        _active_mode = mode
    else:
        try:
            _active_mode = LogMode((mode or LogMode.NORMAL.value).lower())
        except ValueError:
            _active_mode = LogMode.NORMAL
    return _active_mode


def get_log_mode() -> LogMode:
    return _active_mode


def is_trace_logging_enabled() -> bool:
    return _active_mode is LogMode.TRACE


def is_quiet_logging_enabled() -> bool:
    return _active_mode is LogMode.QUIET


def get_default_log_dir() -> Path:
    """``<data dir>/logs``, or the working directory when that is not writable."""
    logs = get_logs_dir()
    try:
        logs.mkdir(parents=True, exist_ok=True)
    except OSError:
        return Path.cwd()
    return logs


def get_default_log_path() -> Path:
    return get_default_log_dir() / DEFAULT_LOG_FILENAME


class _JsonLineFormatter(logging.Formatter):
    """One JSON object per record (for ``--log-format json``)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, _DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class _TickTraceFilter(logging.Filter):
    """Drops ``[tick]`` records unless trace output was asked for."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not isinstance(record.msg, str) or not record.msg.startswith("[tick]"):
            return True
        if is_trace_logging_enabled():
            return True
        return os.environ.get(_TICK_TRACE_FLAG, "").strip().lower() in _TRUTHY


_tick_filter = _TickTraceFilter()


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonLineFormatter()
    return logging.Formatter(fmt=_PLAIN_FORMAT, datefmt=_DATE_FORMAT)


def _make_file_handler(path: Path, level: int, formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
    except OSError:
        # Unwritable log location; console output still works
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _is_file_handler(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.FileHandler)


def setup_logging(
    *,
    level: str | int = "INFO",
    log_file: Optional[str | Path] = None,
    json_format: bool = False,
    logger_name: Optional[str] = None,
    log_mode: LogMode | str | None = None,
    add_console: bool = True,
) -> logging.Logger:
    """Install MesmerDrift's handlers and return the configured logger.

    Args:
        level: Level name or number for the logger and the log file
        log_file: Rotating log file (default: :func:`get_default_log_path`)
        json_format: Write JSON lines instead of plain text
        logger_name: Configure a named logger instead of the root logger
        log_mode: Preset; TRACE forces DEBUG, QUIET lifts the console to WARNING
        add_console: Also log to stderr

    Calling it again keeps the existing handlers and only updates levels.
    """
    if isinstance(level, str):
        file_level = getattr(logging, level.upper(), logging.INFO)
    else:
        file_level = int(level)
    mode = set_log_mode(log_mode) if log_mode is not None else get_log_mode()
    if mode is LogMode.TRACE:
        file_level = min(file_level, logging.DEBUG)
    console_level = max(file_level, logging.WARNING) if mode is LogMode.QUIET else file_level

    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    logger.setLevel(file_level)

    if logger.handlers:
        for handler in logger.handlers:
            if _is_file_handler(handler):
                handler.setLevel(file_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(console_level)
            else:
                handler.setLevel(file_level)
    else:
        formatter = _make_formatter(json_format)
        file_handler = _make_file_handler(
            Path(log_file) if log_file else get_default_log_path(), file_level, formatter
        )
        if file_handler is not None:
            logger.addHandler(file_handler)
        if add_console:
            console = logging.StreamHandler()
            console.setLevel(console_level)
            console.setFormatter(formatter)
            logger.addHandler(console)

    # On handlers, not the logger, so records propagated from module loggers are filtered too
    for handler in logger.handlers:
        if _tick_filter not in handler.filters:
            handler.addFilter(_tick_filter)
    return logger
