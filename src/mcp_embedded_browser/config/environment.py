"""Environment configuration and validation."""

import os
from pathlib import Path
from typing import Optional

import logging
logger = logging.getLogger(__name__)


_TRUTHY = ("1", "true", "True", "yes", "Yes")


def get_env_config() -> dict:
    """
    Read environment variables for the embedded engine.

    Optional:   MCP_ENGINE_USER_DATA_DIR (default <app data>/mcp_embedded_browser/browser-data)
                CHROME_EXECUTABLE_PATH
                CHROME_REMOTE_DEBUG_PORT
                MCP_HEADLESS
                MCP_DOWNLOAD_DIR (default ~/Downloads)
                MCP_SURFACE_HANDLE (default 'standalone')

    The engine profile is always separate from the user's everyday browser
    profiles; cookies are brought over explicitly by the cookie importer.
    """
    from .paths import default_engine_user_data_dir

    user_data_dir = (os.getenv("MCP_ENGINE_USER_DATA_DIR") or "").strip() or default_engine_user_data_dir()
    chrome_path = (os.getenv("CHROME_EXECUTABLE_PATH") or "").strip() or None

    fixed_port_env = (os.getenv("CHROME_REMOTE_DEBUG_PORT") or "").strip()
    fixed_port = int(fixed_port_env) if fixed_port_env.isdigit() else None

    download_dir = (os.getenv("MCP_DOWNLOAD_DIR") or "").strip() or str(Path.home() / "Downloads")

    if chrome_path and not os.path.exists(chrome_path):
        raise EnvironmentError(f"CHROME_EXECUTABLE_PATH does not exist: {chrome_path}")

    return {
        "user_data_dir": user_data_dir,
        "chrome_path": chrome_path,
        "fixed_port": fixed_port,
        "headless": os.getenv("MCP_HEADLESS", "0").strip() in _TRUTHY,
        "download_dir": download_dir,
        "surface_handle": (os.getenv("MCP_SURFACE_HANDLE") or "").strip() or "standalone",
    }


def log_level(default: str = "INFO") -> int:
    """Resolve MCP_LOG_LEVEL to a logging level number."""
    name = (os.getenv("MCP_LOG_LEVEL") or default).strip().upper()
    level = logging.getLevelName(name)
    if isinstance(level, int):
        return level
    logger.warning("Unknown MCP_LOG_LEVEL %r, falling back to %s", name, default)
    return logging.getLevelName(default)


def app_data_root(system: Optional[str] = None) -> Path:
    """Per-user application data folder for the current platform."""
    import platform

    system = system or platform.system()
    if system == "Windows":
        return Path(os.getenv("LOCALAPPDATA") or (Path.home() / "AppData" / "Local"))
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(os.getenv("XDG_CONFIG_HOME") or (Path.home() / ".config"))


__all__ = [
    "get_env_config",
    "log_level",
    "app_data_root",
]
