"""Chrome launch orchestration and command building."""

import time
import platform
import subprocess
from pathlib import Path
from typing import List, Optional

from ..config import chrome_log_dir
from .devtools import is_debugger_listening

import logging
logger = logging.getLogger(__name__)


def build_engine_command(
    binary: str,
    port: int,
    user_data_dir: str,
    headless: bool = False,
) -> List[str]:
    """
    Build the command line for the long-lived embedded engine.

    Args:
        binary: Path to Chrome executable
        port: Remote debugging port
        user_data_dir: Persistent engine profile directory
        headless: Run without a visible window

    Returns:
        list[str]: Command-line arguments for Chrome
    """
    cmd = [
        binary,
        f"--remote-debugging-port={port}",
        "--remote-allow-origins=*",
        f"--user-data-dir={user_data_dir}",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-features=ProcessPerSite",
        "--disable-dev-shm-usage",
        "about:blank",
    ]
    if headless:
        cmd.append("--headless=new")
    return cmd


def build_extraction_command(
    binary: str,
    port: int,
    user_data_dir: str,
    profile_directory: str,
) -> List[str]:
    """
    Build the command line for a headless instance of a user's real browser.

    The instance is pointed at the user's own profile so its cookies can be
    listed over the debugging port.
    """
    return [
        binary,
        "--headless=new",
        "--disable-gpu",
        f"--remote-debugging-port={port}",
        "--remote-allow-origins=*",
        "--no-first-run",
        "--no-default-browser-check",
        f"--user-data-dir={user_data_dir}",
        f"--profile-directory={profile_directory}",
    ]


def launch_browser_process(cmd: List[str], port: int) -> subprocess.Popen:
    """
    Launch a browser process detached from our stdio.

    Args:
        cmd: Command-line arguments
        port: Remote debugging port (used to name the log file)

    Returns:
        subprocess.Popen: Browser process. Caller should check proc.poll().
    """
    error_log = chrome_log_dir() / f"chrome_debug_{port}.log"
    logger.info("Launching browser on debug port %s: %s", port, cmd[0])

    # stdout carries the MCP transport; never let the browser write to it.
    with open(error_log, "ab") as log:
        if platform.system() == "Windows":
            return subprocess.Popen(
                cmd,
                creationflags=subprocess.CREATE_NO_WINDOW,
                stdin=subprocess.DEVNULL,
                stderr=log,
                stdout=subprocess.DEVNULL,
            )
        return subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stderr=log,
            stdout=subprocess.DEVNULL,
        )


def wait_for_devtools_ready(
    host: str,
    port: int,
    timeout_secs: float,
    proc: Optional[subprocess.Popen] = None,
) -> bool:
    """
    Wait for the DevTools HTTP endpoint to answer.

    Returns:
        bool: True when the endpoint answered before timeout_secs

    Raises:
        RuntimeError: If the process exited before the endpoint appeared
    """
    deadline = time.monotonic() + timeout_secs
    while time.monotonic() < deadline:
        if is_debugger_listening(host, port, timeout=0.5):
            return True
        if proc is not None and proc.poll() is not None:
            log = chrome_log_dir() / f"chrome_debug_{port}.log"
            tail = _tail(log)
            raise RuntimeError(f"Chrome exited with code {proc.returncode} before DevTools was ready. {tail}")
        time.sleep(0.1)
    return False


def _tail(path: Path, limit: int = 500) -> str:
    try:
        return path.read_text(errors="replace")[-limit:]
    except OSError:
        return ""


__all__ = [
    "build_engine_command",
    "build_extraction_command",
    "launch_browser_process",
    "wait_for_devtools_ready",
]
