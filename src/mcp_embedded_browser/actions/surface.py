"""
Action surface exposed to the agent.

Every public action is wrapped the same way:

    @tool_envelope            errors become plain 'Error: ...' strings
    @ensure_engine_ready      lazy engine start
    @exclusive_engine_access  one action at a time per session

Composite actions (open, do) hold the gate for their whole duration and call
the undecorated ``_impl`` methods.
"""

import json
import time
import asyncio
from typing import Optional

from ..constants import (
    DEFAULT_SCROLL_PIXELS,
    DO_SETTLE_MAX_WAIT_MS,
    DO_SETTLE_POLL_MS,
    DOWNLOAD_POLL_MS,
    DOWNLOAD_RECENT_WINDOW_SECS,
    DOWNLOAD_WAIT_DEFAULT_MS,
    EVALUATE_SETTLE_SECS,
    FIND_DEFAULT_LIMIT,
    GO_BACK_TIMEOUT_SECS,
    LOOK_MAX_ELEMENTS,
    LOOK_TEXT_PREVIEW_CHARS,
    NAVIGATION_TIMEOUT_SECS,
    SETTLE_MAX_WAIT_MS,
    SETTLE_MIN_TEXT_LENGTH,
    SETTLE_POLL_MS,
    SPA_NAVIGATION_TIMEOUT_SECS,
    WAIT_FOR_DEFAULT_TIMEOUT_MS,
    WAIT_FOR_POLL_MS,
)
from ..decorators import ensure_engine_ready, exclusive_engine_access, tool_envelope
from ..engine.downloads import TrackedDownload, format_download_status, matches_glob
from ..errors import BrowserControllerError, ElementNotFoundError
from . import scripts
from .inspection import format_download_hints, format_find, format_look, rank_elements
from .targeting import is_likely_spa_route, normalize_url, parse_target

import logging
logger = logging.getLogger(__name__)


STATE_CHANGING_VERBS = ("click", "type", "press", "select", "back")
VALID_VERBS = ("click", "type", "press", "select", "scroll", "back", "wait", "download", "open", "look", "find", "js")


def _int_or(value, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _describe_hit(result: dict) -> str:
    """'button "Save" tooltip="..." -> href' from a script's element description."""
    text = result.get("text") or ""
    out = f'{result.get("tag", "")} "{text}"'
    tooltip = result.get("tooltip") or ""
    if tooltip and tooltip != text:
        out += f' tooltip="{tooltip}"'
    if result.get("href"):
        out += f" -> {result['href']}"
    return out


class ActionSurface:
    """
    Agent-facing browser actions over one EngineSession.

    Args:
        session: The engine session that owns the browser and the action gate
    """

    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------ #
    # Primitive actions
    # ------------------------------------------------------------------ #

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def navigate(self, url: str) -> str:
        """Navigate to url and report the resulting page."""
        return await self._navigate(url)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def click(self, target: str) -> str:
        """Click by element number, selector, or visible text."""
        return await self._click(target)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def type(self, target: str, text: str) -> str:
        return await self._type(target, text)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def press_key(self, key: str = "Enter", target: Optional[str] = None) -> str:
        return await self._press_key(key, target)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def select(self, target: str, value: str) -> str:
        return await self._select(target, value)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def scroll(self, direction: str = "down", pixels: int = DEFAULT_SCROLL_PIXELS) -> str:
        return await self._scroll(direction, pixels)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def go_back(self) -> str:
        return await self._go_back()

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def wait_for(self, selector: str, timeout_ms: int = WAIT_FOR_DEFAULT_TIMEOUT_MS) -> str:
        return await self._wait_for(selector, timeout_ms)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def evaluate(self, script: str) -> str:
        """Run JavaScript in the page and return its JSON-serialized result."""
        return await self._evaluate(script)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def look(self, filter_text: Optional[str] = None, dialog_only: bool = False) -> str:
        """Numbered snapshot of visible interactive elements plus a text preview."""
        return await self._look(filter_text, dialog_only)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def find(self, query: str, limit: int = FIND_DEFAULT_LIMIT, prefer_dialog: bool = True) -> str:
        """Rank interactive elements against query; indices work with click/type."""
        return await self._find(query, limit, prefer_dialog)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def wait_for_download(self, pattern: Optional[str] = None, timeout_ms: int = DOWNLOAD_WAIT_DEFAULT_MS) -> str:
        return await self._wait_for_download(pattern, timeout_ms)

    # ------------------------------------------------------------------ #
    # Composite actions
    # ------------------------------------------------------------------ #

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def open(self, url: str) -> str:
        """Navigate, wait for content to settle, then return a look() snapshot."""
        return await self._open(url)

    @tool_envelope
    @ensure_engine_ready
    @exclusive_engine_access
    async def do(self, action: str, target: Optional[str] = None, value: Optional[str] = None) -> str:
        """
        Single dispatch entry point for page actions.

        Verbs: click, type, press, select, scroll, back, wait, download
        (plus open, look, find, js). State-changing verbs are followed by a
        settle and a fresh snapshot, or by a download/new-window report.
        """
        return await self._do(action, target, value)

    # ------------------------------------------------------------------ #
    # Implementations (caller holds the gate)
    # ------------------------------------------------------------------ #

    async def _navigate(self, url: str) -> str:
        url = normalize_url(url)
        if not url:
            return "Error: navigate needs a URL"

        started = time.time()
        timeout = SPA_NAVIGATION_TIMEOUT_SECS if is_likely_spa_route(url) else NAVIGATION_TIMEOUT_SECS
        outcome = await self.session.navigate(url, timeout)

        downloads = self.session.downloads.since(started)
        if downloads:
            status = await self._download_status(downloads[-1])
            return f"Navigation triggered a file download:\n{status}"
        if outcome.error:
            return f"Error: navigation to {url} failed: {outcome.error}"
        if not outcome.completed:
            return f"Navigation to {url} timed out after {outcome.elapsed:.1f}s."

        page_url, title = await self.session.page_info()
        return f"Navigated to {page_url}. Page title: {title}. ({outcome.elapsed:.1f}s)"

    async def _click(self, target: Optional[str]) -> str:
        parsed = parse_target(target)
        if parsed is None:
            return "Error: click needs a target - element number, button text, or CSS selector"

        result = await self.session.run_script(scripts.CLICK_JS, parsed.mode, parsed.value, True) or {}
        if not result.get("ok"):
            raise ElementNotFoundError(result.get("error") or f"no clickable element found for {parsed.value}")
        await asyncio.sleep(0.2)
        if parsed.mode == "index":
            return f"Clicked [{parsed.value}] {_describe_hit(result)}"
        return f"Clicked {_describe_hit(result)}"

    async def _type(self, target: Optional[str], text: Optional[str]) -> str:
        parsed = parse_target(target)
        if parsed is None or text is None:
            return "Error: type needs target (element number or selector) and value (text)"

        mode = "index" if parsed.mode == "index" else "selector"
        result = await self.session.run_script(scripts.TYPE_JS, mode, parsed.value, text) or {}
        if not result.get("ok"):
            raise ElementNotFoundError(result.get("error") or f"no input found for: {parsed.value}")
        if mode == "index":
            return f"Typed into [{parsed.value}] {result.get('tag', '')}"
        return f"Typed into: {result.get('tag', '')} [{result.get('name', '')}]"

    async def _press_key(self, key: Optional[str], target: Optional[str] = None) -> str:
        key = (key or "").strip() or "Enter"
        result = await self.session.run_script(scripts.PRESS_KEY_JS, key, (target or "").strip()) or {}
        if not result.get("ok"):
            return f"Error: {result.get('error') or 'key press failed'}"
        await asyncio.sleep(0.15)
        out = f"Pressed key {key}"
        if result.get("submitted"):
            out += " (form submitted)"
        return out

    async def _select(self, target: Optional[str], value: Optional[str]) -> str:
        parsed = parse_target(target)
        if parsed is None or not (value or "").strip():
            return "Error: select needs target and value"

        mode = "index" if parsed.mode == "index" else "selector"
        result = await self.session.run_script(scripts.SELECT_JS, mode, parsed.value, value) or {}
        if not result.get("ok"):
            raise ElementNotFoundError(result.get("error") or f"select element not found: {parsed.value}")
        return f"Selected: {result.get('text', value)}"

    async def _scroll(self, direction: Optional[str], pixels: int) -> str:
        direction = (direction or "down").strip().lower()
        if direction not in ("up", "down"):
            return f"Error: scroll direction must be 'up' or 'down', got '{direction}'"
        pixels = abs(int(pixels)) or DEFAULT_SCROLL_PIXELS
        dy = -pixels if direction == "up" else pixels
        await self.session.run_script(scripts.SCROLL_JS, dy)
        return f"Scrolled {direction} by {pixels}px"

    async def _go_back(self) -> str:
        outcome = await self.session.go_back(GO_BACK_TIMEOUT_SECS)
        if outcome is None:
            return "Cannot go back - no previous page."
        page_url, _ = await self.session.page_info()
        if outcome.error:
            return f"Error: going back failed: {outcome.error}"
        if not outcome.completed:
            return f"Navigated back to: {page_url} (page still loading after {outcome.elapsed:.1f}s)"
        return f"Navigated back to: {page_url}"

    async def _wait_for(self, selector: Optional[str], timeout_ms: int) -> str:
        selector = (selector or "").strip() or "body"
        deadline = time.monotonic() + max(timeout_ms, 0) / 1000
        while True:
            found = await self.session.run_script(scripts.ELEMENT_EXISTS_JS, selector)
            if found is None:
                return f"Error: invalid selector: {selector}"
            if found:
                return f"Element found: {selector}"
            if time.monotonic() >= deadline:
                return f"Timeout waiting for: {selector}"
            await asyncio.sleep(WAIT_FOR_POLL_MS / 1000)

    async def _evaluate(self, script: Optional[str]) -> str:
        if not (script or "").strip():
            return "Error: js needs a script"

        started = time.time()
        response = await self.session.evaluate(script) or {}
        details = response.get("exceptionDetails")
        if details:
            exc = details.get("exception") or {}
            return f"Error: script threw: {exc.get('description') or details.get('text') or 'unknown error'}"

        remote = response.get("result") or {}
        if "value" in remote:
            value = remote["value"]
            text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
        elif remote.get("type") == "undefined":
            text = "undefined"
        else:
            text = remote.get("description") or remote.get("type") or ""

        await asyncio.sleep(EVALUATE_SETTLE_SECS)
        downloads = self.session.downloads.since(started)
        if downloads:
            status = await self._download_status(downloads[-1])
            return f"{text}\n\nDownload triggered:\n{status}"
        return text

    async def _collect(self, dialog_only: bool = False, preview_chars: int = 0) -> dict:
        return await self.session.run_script(scripts.COLLECT_ELEMENTS_JS, dialog_only, preview_chars) or {}

    async def _look(self, filter_text: Optional[str] = None, dialog_only: bool = False) -> str:
        page = await self._collect(dialog_only, LOOK_TEXT_PREVIEW_CHARS)
        return format_look(page, filter_text, LOOK_MAX_ELEMENTS)

    async def _find(self, query: Optional[str], limit: int, prefer_dialog: bool = True) -> str:
        query = (query or "").strip()
        if not query:
            return "Error: find needs a query"
        page = await self._collect()
        ranked = rank_elements(page.get("items") or [], query, limit, prefer_dialog)
        return format_find(page, query, ranked)

    async def _settle(self, max_wait_ms: int = SETTLE_MAX_WAIT_MS, poll_ms: int = SETTLE_POLL_MS) -> bool:
        """
        Poll text length and element count until they hold still.

        Returns:
            bool: True if the page settled before max_wait_ms
        """
        deadline = time.monotonic() + max_wait_ms / 1000
        last = None
        stable = 0
        while time.monotonic() < deadline:
            try:
                metrics = tuple(await self.session.run_script(scripts.PAGE_METRICS_JS) or (0, 0))
            except BrowserControllerError:
                metrics = (0, 0)
            if metrics == last and metrics[0] > SETTLE_MIN_TEXT_LENGTH:
                stable += 1
                if stable >= 2:
                    return True
            else:
                stable = 0
            last = metrics
            await asyncio.sleep(poll_ms / 1000)
        return False

    async def _download_status(self, download: TrackedDownload, max_wait_ms: int = DOWNLOAD_WAIT_DEFAULT_MS) -> str:
        """Status text, giving an in-progress download up to max_wait_ms to finish."""
        deadline = time.monotonic() + max_wait_ms / 1000
        while not download.is_terminal and time.monotonic() < deadline:
            await asyncio.sleep(DOWNLOAD_POLL_MS / 1000)
        return format_download_status(download)

    async def _download_hints(self) -> str:
        try:
            page = await self._collect()
        except BrowserControllerError as e:
            logger.debug("Download hints unavailable: %s", e)
            return ""
        return format_download_hints(page.get("items") or [])

    async def _wait_for_download(self, pattern: Optional[str], timeout_ms: int) -> str:
        pattern = (pattern or "").strip() or "*"
        downloads = self.session.downloads

        recent = downloads.since(time.time() - DOWNLOAD_RECENT_WINDOW_SECS, pattern)
        if recent:
            return format_download_status(recent[-1])

        path = await self.session.wait_for_download_start(timeout_ms / 1000)
        if path:
            tracked = downloads.find_by_path(path)
            if tracked is not None and matches_glob(path, pattern):
                return format_download_status(tracked)
            return f"Download detected but doesn't match pattern '{pattern}': {path}"

        hints = await self._download_hints()
        return "No download detected." + (f"\n\n{hints}" if hints else "")

    async def _open(self, url: Optional[str]) -> str:
        result = await self._navigate(url or "")
        if (
            result.startswith("Error")
            or result.startswith("Navigation triggered a file download")
            or " timed out after " in result
        ):
            return result
        await self._settle(SETTLE_MAX_WAIT_MS, SETTLE_POLL_MS)
        return await self._look()

    async def _do(self, action: Optional[str], target: Optional[str], value: Optional[str]) -> str:
        verb = (action or "").strip().lower()
        started = time.time()
        self.session.take_new_window_url()

        if verb == "click":
            result = await self._click(target)
        elif verb == "type":
            result = await self._type(target, value)
        elif verb == "press":
            result = await self._press_key(target or "Enter", value)
        elif verb == "select":
            result = await self._select(target, value)
        elif verb == "scroll":
            result = await self._scroll(target or "down", _int_or(value, DEFAULT_SCROLL_PIXELS))
        elif verb == "back":
            result = await self._go_back()
        elif verb == "wait":
            result = await self._wait_for(target or "body", _int_or(value, WAIT_FOR_DEFAULT_TIMEOUT_MS))
        elif verb == "download":
            result = await self._wait_for_download(target, _int_or(value, DOWNLOAD_WAIT_DEFAULT_MS))
        elif verb in ("open", "navigate"):
            return await self._open(target or value)
        elif verb == "look":
            return await self._look(target)
        elif verb == "find":
            return await self._find(target, _int_or(value, FIND_DEFAULT_LIMIT))
        elif verb in ("js", "evaluate"):
            return await self._evaluate(target or value)
        else:
            return f"Unknown action '{verb}'. Valid: {', '.join(VALID_VERBS)}"

        if result.startswith("Error") or verb not in STATE_CHANGING_VERBS:
            return result

        await self._settle(DO_SETTLE_MAX_WAIT_MS, DO_SETTLE_POLL_MS)

        downloads = self.session.downloads.since(started)
        if downloads:
            status = await self._download_status(downloads[-1])
            return f"{result}\n\nDownload detected:\n{status}"

        new_window_url = self.session.take_new_window_url()
        if new_window_url:
            result += f"\n\nNavigated to: {new_window_url}"

        snapshot = await self._look()
        return f"{result}\n\n{snapshot}"


__all__ = [
    "ActionSurface",
    "STATE_CHANGING_VERBS",
    "VALID_VERBS",
]
