"""Browser process discovery and termination by browser family."""

import platform
from typing import Iterable, List, Optional, Set

import psutil

from .process import kill_process_tree, wait_gone

import logging
logger = logging.getLogger(__name__)


_BACKGROUND_SWITCHES = ("--headless", "--no-startup-window", "--silent-launch")


def _normalize_name(name: Optional[str]) -> str:
    name = (name or "").lower()
    return name[:-4] if name.endswith(".exe") else name


def is_main_browser_process(cmdline: Optional[List[str]]) -> bool:
    """Renderer, GPU and utility children carry a --type= switch; the browser process does not."""
    return not any((arg or "").startswith("--type=") for arg in (cmdline or []))


def find_browser_processes(process_names: Iterable[str]) -> List[psutil.Process]:
    """
    Find main browser processes whose executable name is one of process_names.

    Args:
        process_names: Executable names without extension, e.g. ("chrome", "msedge")

    Returns:
        List[psutil.Process]: Main (non-child) browser processes
    """
    wanted = {n.lower() for n in process_names}
    found = []
    for p in psutil.process_iter(["name", "cmdline"]):
        try:
            if _normalize_name(p.info["name"]) not in wanted:
                continue
            if is_main_browser_process(p.info.get("cmdline")):
                found.append(p)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return found


def _pids_with_visible_windows() -> Optional[Set[int]]:
    """Pids owning a visible top-level window, or None when that cannot be determined."""
    if platform.system() != "Windows":
        return None

    import ctypes
    from ctypes import wintypes

    user32 = ctypes.windll.user32
    pids: Set[int] = set()

    @ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.HWND, wintypes.LPARAM)
    def _collect(hwnd, _lparam):
        if user32.IsWindowVisible(hwnd):
            pid = wintypes.DWORD()
            user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
            pids.add(pid.value)
        return True

    user32.EnumWindows(_collect, 0)
    return pids


def is_background_process(proc: psutil.Process, visible_pids: Optional[Set[int]] = None) -> bool:
    """
    True when the browser process has no visible window.

    On Windows the answer comes from the window list. Elsewhere it is
    approximated from command-line switches that suppress the window.
    """
    if visible_pids is not None:
        try:
            pids = {proc.pid} | {c.pid for c in proc.children(recursive=True)}
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pids = {proc.pid}
        return not (pids & visible_pids)

    try:
        cmdline = proc.info.get("cmdline") if hasattr(proc, "info") else proc.cmdline()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False
    return any((arg or "").startswith(_BACKGROUND_SWITCHES) for arg in (cmdline or []))


def terminate_browser_processes(
    process_names: Iterable[str],
    include_visible: bool = False,
    grace_period: float = 1.5,
) -> int:
    """
    Terminate running instances of one browser family.

    Background instances are killed outright. Visible instances are left
    alone unless include_visible is set, in which case they are asked to
    close first and killed after grace_period.

    Returns:
        int: Number of browser main processes that were terminated
    """
    procs = find_browser_processes(process_names)
    if not procs:
        return 0

    visible_pids = _pids_with_visible_windows()
    terminated = 0
    graceful = []

    for proc in procs:
        if is_background_process(proc, visible_pids):
            logger.info("Killing background browser process %s", proc.pid)
            kill_process_tree(proc.pid)
            terminated += 1
        elif include_visible:
            try:
                proc.terminate()
                graceful.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

    if graceful:
        for proc in wait_gone(graceful, timeout=grace_period):
            logger.info("Browser process %s ignored close request; killing tree", proc.pid)
            kill_process_tree(proc.pid)
        terminated += len(graceful)

    return terminated


__all__ = [
    "is_main_browser_process",
    "find_browser_processes",
    "is_background_process",
    "terminate_browser_processes",
]
