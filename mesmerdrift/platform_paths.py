"""Platform-specific paths.

Goal: keep user-created data (custom sessions, logs) out of temp / install
folders. Standard environment variables only; ``MESMERDRIFT_HOME`` overrides
the data directory on every platform (tests, portable installs).
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "MesmerDrift"


def is_windows() -> bool:
    return os.name == "nt"


def is_frozen() -> bool:
    # PyInstaller sets sys.frozen; other freezers may too.
    return bool(getattr(sys, "frozen", False))


def get_user_data_dir(app_name: str = APP_NAME) -> Path:
    """Return a persistent per-user data directory.

    Windows: %APPDATA%\\MesmerDrift
    Others:  ~/.mesmerdrift
    """
    override = os.getenv("MESMERDRIFT_HOME")
    if override:
        return Path(override)

    if is_windows():
        base = os.getenv("APPDATA")
        if base:
            return Path(base) / app_name
        return Path.home() / "AppData" / "Roaming" / app_name

    return Path.home() / f".{app_name.lower()}"


def get_sessions_dir(app_name: str = APP_NAME) -> Path:
    return get_user_data_dir(app_name) / "sessions"


def get_logs_dir(app_name: str = APP_NAME) -> Path:
    return get_user_data_dir(app_name) / "logs"


def get_bundled_sessions_dir() -> Path:
    """Directory holding the session files shipped with the package."""
    if is_frozen():
        base = Path(getattr(sys, "_MEIPASS", Path(sys.executable).parent))
        return base / "mesmerdrift" / "sessions"
    return Path(__file__).resolve().parent / "sessions"


def ensure_dir(path: Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
