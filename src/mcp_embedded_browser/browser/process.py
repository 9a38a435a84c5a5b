"""Process and port management."""

import random
import socket
from typing import Iterable, Optional, Tuple

import psutil

import logging
logger = logging.getLogger(__name__)


def get_free_port() -> int:
    """Get a free port by binding to port 0."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def random_high_port(port_range: Tuple[int, int]) -> int:
    """Pick a random debugging port inside port_range (inclusive)."""
    low, high = port_range
    return random.randint(low, high)


def kill_process_tree(pid: Optional[int], timeout: float = 3.0) -> int:
    """
    Kill a process and all of its descendants, children first.

    Args:
        pid: Root process id. None or a vanished pid is a no-op.
        timeout: How long to wait for the processes to exit

    Returns:
        int: Number of processes that were signalled
    """
    if not pid:
        return 0
    try:
        root = psutil.Process(pid)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return 0

    try:
        victims = root.children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        victims = []
    victims.append(root)

    killed = 0
    for proc in victims:
        try:
            proc.kill()
            killed += 1
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    psutil.wait_procs(victims, timeout=timeout)
    logger.debug("Killed process tree rooted at %s (%d processes)", pid, killed)
    return killed


def wait_gone(procs: Iterable[psutil.Process], timeout: float) -> list:
    """Wait for processes to exit; return the ones still alive."""
    _, alive = psutil.wait_procs(list(procs), timeout=timeout)
    return alive


__all__ = [
    "get_free_port",
    "random_high_port",
    "kill_process_tree",
    "wait_gone",
]
