"""
Live cookie extraction through a headless instance of the user's browser.

Used when the stored values cannot be decrypted from outside the browser
(app-bound encryption). The browser itself is asked for its cookies over the
remote-debugging protocol.
"""

import time
from datetime import datetime, timezone
from typing import List, Optional

from ..browser.channel import DevToolsChannel
from ..browser.chrome_launcher import build_extraction_command, launch_browser_process
from ..browser.chrome_process import terminate_browser_processes
from ..browser.devtools import find_page_websocket_url, list_targets, open_blank_page
from ..browser.process import kill_process_tree, random_high_port
from ..constants import (
    COOKIE_COPY_RETRY_WAIT_SECS,
    EXTRACTION_FORCE_PAGE_AT_POLL,
    EXTRACTION_MESSAGE_TIMEOUT_SECS,
    EXTRACTION_PORT_RANGE,
    EXTRACTION_STARTUP_TIMEOUT_SECS,
    EXTRACTION_TARGET_POLL_SECS,
    EXTRACTION_TARGET_POLLS,
    GRACEFUL_CLOSE_WAIT_SECS,
)
from ..errors import DevToolsError
from .browsers import find_browser_executable
from .models import BrowserProfile, CookieRecord, SameSite

import logging
logger = logging.getLogger(__name__)


DEBUG_HOST = "127.0.0.1"
GET_ALL_COOKIES_ID = 1


def parse_devtools_cookies(response: Optional[dict]) -> List[CookieRecord]:
    """
    Turn a Network.getAllCookies response into CookieRecords.

    Entries without a name or a domain are skipped. A missing or non-positive
    expiry means a session cookie.
    """
    result = (response or {}).get("result") or {}
    cookies = []
    for c in result.get("cookies") or []:
        name = c.get("name") or ""
        domain = (c.get("domain") or "").strip()
        if not name or not domain:
            continue

        expires = None
        try:
            stamp = float(c.get("expires") or 0)
        except (TypeError, ValueError):
            stamp = 0
        if stamp > 0:
            try:
                expires = datetime.fromtimestamp(int(stamp), tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                expires = None

        cookies.append(
            CookieRecord(
                host=domain,
                name=name,
                value=c.get("value") or "",
                path=c.get("path") or "/",
                secure=bool(c.get("secure")),
                http_only=bool(c.get("httpOnly")),
                same_site=SameSite.from_protocol(c.get("sameSite")),
                expires=expires,
            )
        )
    return cookies


def _wait_for_page_target(port: int, proc, deadline: float) -> Optional[str]:
    """Poll /json for a page target; open about:blank if none shows up early on."""
    for attempt in range(EXTRACTION_TARGET_POLLS):
        if time.monotonic() >= deadline:
            break
        if proc.poll() is not None:
            logger.warning("Headless browser exited with code %s before a page target appeared", proc.returncode)
            return None

        ws_url = find_page_websocket_url(list_targets(DEBUG_HOST, port))
        if ws_url:
            return ws_url
        if attempt == EXTRACTION_FORCE_PAGE_AT_POLL:
            logger.debug("No page target on port %s yet; opening about:blank", port)
            open_blank_page(DEBUG_HOST, port)
        time.sleep(EXTRACTION_TARGET_POLL_SECS)
    return None


def request_all_cookies(ws_url: str, timeout: float = EXTRACTION_MESSAGE_TIMEOUT_SECS) -> Optional[dict]:
    """
    Send Network.getAllCookies on a fresh channel and wait for the tagged response.

    Async events and unrelated responses are discarded. Returns None on timeout.
    """
    with DevToolsChannel(ws_url) as channel:
        channel.send("Network.getAllCookies", msg_id=GET_ALL_COOKIES_ID)
        return channel.receive_by_id(GET_ALL_COOKIES_ID, timeout)


def extract_cookies_via_devtools(profile: BrowserProfile) -> List[CookieRecord]:
    """
    Launch the profile's browser headless and list its cookies.

    Every running instance of the browser family is closed first, since a
    profile can only be opened by one process. The launched process tree is
    always killed afterwards.

    Returns:
        List[CookieRecord]: Extracted cookies; [] on any failure
    """
    browser = profile.browser
    binary = find_browser_executable(browser)
    if binary is None:
        logger.warning("No executable found for %s; cannot extract cookies live", browser.name)
        return []

    terminate_browser_processes(browser.process_names, include_visible=True, grace_period=GRACEFUL_CLOSE_WAIT_SECS)
    time.sleep(COOKIE_COPY_RETRY_WAIT_SECS)

    port = random_high_port(EXTRACTION_PORT_RANGE)
    cmd = build_extraction_command(binary, port, browser.user_data_path, profile.folder)

    proc = None
    try:
        proc = launch_browser_process(cmd, port)
        deadline = time.monotonic() + EXTRACTION_STARTUP_TIMEOUT_SECS
        ws_url = _wait_for_page_target(port, proc, deadline)
        if ws_url is None:
            logger.warning("%s exposed no page target on port %s", browser.name, port)
            return []

        response = request_all_cookies(ws_url)
        if response is None:
            logger.warning("Timed out waiting for cookies from %s", browser.name)
            return []
        if "error" in response:
            logger.warning("Network.getAllCookies failed: %s", response["error"])
            return []

        cookies = parse_devtools_cookies(response)
        logger.info("Extracted %d cookies from %s / %s", len(cookies), browser.name, profile.folder)
        return cookies
    except (DevToolsError, OSError, RuntimeError) as e:
        logger.warning("Live cookie extraction from %s failed: %s", browser.name, e)
        return []
    finally:
        if proc is not None:
            kill_process_tree(proc.pid)


__all__ = [
    "DEBUG_HOST",
    "parse_devtools_cookies",
    "request_all_cookies",
    "extract_cookies_via_devtools",
]
