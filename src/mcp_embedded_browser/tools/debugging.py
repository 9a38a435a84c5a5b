"""Debugging and diagnostic tool implementations."""

import json

from ..browser.devtools import browser_version_info, devtools_active_port_from_file
from ..context import get_context
from ..utils.diagnostics import collect_diagnostics


async def browser_diagnostics() -> str:
    """Engine state, DevTools endpoint and recent downloads as JSON."""
    ctx = get_context()
    session = ctx.session

    udir = session.config.get("user_data_dir")
    port_val = devtools_active_port_from_file(udir) if udir else None
    devtools_http = browser_version_info(session.debugger_host, port_val) if port_val else None

    recent = [
        {"file": d.file_name, "state": d.state.value, "bytes": d.bytes_received, "total": d.total_bytes}
        for d in session.downloads.since(0)
    ]
    diagnostics = {
        "summary": collect_diagnostics(session),
        "session": session.describe(),
        "devtools_active_port": port_val,
        "devtools_http_version": devtools_http,
        "new_window_url": session.new_window_url,
        "downloads": recent,
    }
    return json.dumps({"ok": True, "diagnostics": diagnostics}, default=str)


__all__ = ["browser_diagnostics"]
