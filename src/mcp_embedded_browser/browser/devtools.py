"""DevTools HTTP introspection endpoints (loopback only)."""

import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import List, Optional

import logging
logger = logging.getLogger(__name__)


def _get_json(url: str, timeout: float, method: str = "GET"):
    req = urllib.request.Request(url, method=method)
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return json.load(resp)


def is_debugger_listening(host: str, port: int, timeout: float = 3.0) -> bool:
    """Check if Chrome DevTools debugger is listening on a port."""
    try:
        with urllib.request.urlopen(f"http://{host}:{port}/json/version", timeout=timeout) as resp:
            return resp.status == 200
    except (urllib.error.URLError, OSError, ValueError):
        return False


def browser_version_info(host: str, port: int, timeout: float = 1.5) -> Optional[dict]:
    """Return /json/version metadata, including webSocketDebuggerUrl of the browser target."""
    try:
        return _get_json(f"http://{host}:{port}/json/version", timeout)
    except (urllib.error.URLError, OSError, ValueError):
        return None


def list_targets(host: str, port: int, timeout: float = 1.0) -> List[dict]:
    """Return the /json target list, or [] when the endpoint is not answering."""
    try:
        targets = _get_json(f"http://{host}:{port}/json", timeout)
    except (urllib.error.URLError, OSError, ValueError):
        return []
    return targets if isinstance(targets, list) else []


def find_page_websocket_url(targets: List[dict]) -> Optional[str]:
    """
    Pick the first page-level target with a debugger URL.

    Browser-level targets cannot answer cookie queries, so only type=page counts.
    """
    for target in targets:
        if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
            return target["webSocketDebuggerUrl"]
    return None


def open_blank_page(host: str, port: int, timeout: float = 1.0) -> bool:
    """Ask the browser to open about:blank so a page target exists."""
    url = f"http://{host}:{port}/json/new?about:blank"
    # Recent Chrome requires PUT here; older builds only accept GET.
    for method in ("PUT", "GET"):
        try:
            _get_json(url, timeout, method=method)
            return True
        except (urllib.error.URLError, OSError, ValueError):
            continue
    return False


def devtools_active_port_from_file(user_data_dir: str) -> Optional[int]:
    """
    If Chrome is running this profile with remote debugging enabled,
    it writes 'DevToolsActivePort' in the user-data-dir. Return that port if valid.
    """
    try:
        p = Path(user_data_dir) / "DevToolsActivePort"
        if not p.exists():
            return None
        lines = p.read_text().splitlines()
        if not lines:
            return None
        first = lines[0].strip()
        return int(first) if first.isdigit() else None
    except OSError:
        return None


__all__ = [
    "is_debugger_listening",
    "browser_version_info",
    "list_targets",
    "find_page_websocket_url",
    "open_blank_page",
    "devtools_active_port_from_file",
]
