"""Chrome executable resolution for the embedded engine."""

import os
import shutil
import platform
from typing import Iterable, Optional

import logging
logger = logging.getLogger(__name__)


def first_existing_executable(candidates: Iterable[str]) -> Optional[str]:
    """Return the first candidate that exists as a file or resolves on PATH."""
    for c in candidates:
        if not c:
            continue
        if os.path.isfile(c):
            return c
        found = shutil.which(c)
        if found:
            return found
    return None


def get_chrome_binary_for_platform(config: dict) -> str:
    """
    Get platform-specific Chrome binary path.

    Args:
        config: Configuration dict with optional chrome_path

    Returns:
        str: Path to Chrome binary

    Raises:
        FileNotFoundError: If no Chrome binary can be found
    """
    if config.get("chrome_path"):
        return config["chrome_path"]

    system = platform.system()
    if system == "Windows":
        local = os.getenv("LOCALAPPDATA") or ""
        candidates = [
            r"C:\Program Files\Google\Chrome\Application\chrome.exe",
            r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
            os.path.join(local, "Google", "Chrome", "Application", "chrome.exe") if local else "",
            "chrome",
        ]
    elif system == "Darwin":
        candidates = [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
        ]
    else:
        candidates = ["google-chrome", "google-chrome-stable", "chrome", "chromium", "chromium-browser"]

    found = first_existing_executable(candidates)
    if found:
        return found
    raise FileNotFoundError(
        "Chrome executable not found. Set CHROME_EXECUTABLE_PATH to the full binary path."
    )


__all__ = [
    "first_existing_executable",
    "get_chrome_binary_for_platform",
]
