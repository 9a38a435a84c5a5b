"""Path utilities for engine data, logs and temporary files."""

import os
import uuid
import tempfile
from pathlib import Path

from .environment import app_data_root


APP_DIR_NAME = "mcp_embedded_browser"


def default_engine_user_data_dir() -> str:
    """Persistent profile directory owned by the embedded engine."""
    return str(app_data_root() / APP_DIR_NAME / "browser-data")


def chromedriver_log_path() -> str:
    """Get the path to the ChromeDriver log file for this process."""
    return os.path.join(tempfile.gettempdir(), f"chromedriver_{APP_DIR_NAME}_{os.getpid()}.log")


def chrome_log_dir() -> Path:
    log_dir = Path(tempfile.gettempdir()) / f"{APP_DIR_NAME}_logs"
    log_dir.mkdir(exist_ok=True)
    return log_dir


def temp_cookie_copy_path() -> str:
    """Unique temp path for a private copy of a cookie database."""
    return os.path.join(tempfile.gettempdir(), f"{APP_DIR_NAME}_cookies_{uuid.uuid4().hex}.db")


__all__ = [
    "APP_DIR_NAME",
    "default_engine_user_data_dir",
    "chromedriver_log_path",
    "chrome_log_dir",
    "temp_cookie_copy_path",
]
