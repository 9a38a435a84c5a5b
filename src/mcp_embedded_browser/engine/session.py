"""
Embedded engine session.

Owns one long-lived Chromium instance, the Selenium controller attached to it,
and a browser-level DevTools channel whose events are turned into awaitable
completion signals. Every Selenium call runs on one dedicated engine thread.

Thread model:
    asyncio loop      callers (tools, action surface, cookie importer)
    engine thread     Selenium / protocol commands, marshaled via invoke()
    event pump        DevTools events; only fires signals and updates downloads
"""

import time
import asyncio
import functools
import threading
import subprocess
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from selenium import webdriver
from selenium.common.exceptions import JavascriptException, WebDriverException

from ..config import get_env_config
from ..constants import (
    DEVTOOLS_CALL_TIMEOUT_SECS,
    DEVTOOLS_READY_WAIT_SECS,
    DOWNLOAD_HISTORY_SIZE,
    NAVIGATION_SETTLE_SECS,
)
from ..errors import DevToolsError, EngineUnavailableError, ScriptExecutionError
from ..browser.channel import DevToolsChannel
from ..browser.chrome_executable import get_chrome_binary_for_platform
from ..browser.chrome_launcher import build_engine_command, launch_browser_process, wait_for_devtools_ready
from ..browser.devtools import browser_version_info, devtools_active_port_from_file, is_debugger_listening
from ..browser.driver import create_webdriver, current_target_id
from ..browser.process import get_free_port, kill_process_tree
from ..utils.retry import retry_op
from .downloads import DownloadTracker
from .signals import CompletionSignal, wait_any

import logging
logger = logging.getLogger(__name__)


@dataclass
class NavigationOutcome:
    """Result of waiting for a navigation. A timeout is completed=False, not an error."""

    completed: bool
    elapsed: float
    error: Optional[str] = None


class EngineSession:
    """
    Single owner of the embedded browser engine.

    Attributes:
        config: Environment configuration dictionary
        driver: Selenium WebDriver attached to the engine (None until initialized)
        debugger_host: DevTools host (always loopback)
        debugger_port: DevTools port of the engine
        target_id: DevTools target id of the controlled page
        page_session_id: Flattened DevTools session attached to that page
        surface_handle: Host window token the engine is bound to
        downloads: Recent download history
        new_window_url: Last pop-up URL redirected into the main page
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = config if config is not None else get_env_config()
        self.driver: Optional[webdriver.Chrome] = None
        self.debugger_host = "127.0.0.1"
        self.debugger_port: Optional[int] = None
        self.target_id: Optional[str] = None
        self.page_session_id: Optional[str] = None
        self.surface_handle: Any = None
        self._pending_surface: Any = None

        self._proc: Optional[subprocess.Popen] = None
        self._channel: Optional[DevToolsChannel] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._engine_thread_id: Optional[int] = None

        self._init_lock: Optional[asyncio.Lock] = None
        self._action_gate: Optional[asyncio.Lock] = None

        self.load_signal = CompletionSignal("load-completed")
        self.url_signal = CompletionSignal("url-changed")
        self.download_signal = CompletionSignal("download-started")
        self.downloads = DownloadTracker(self.config.get("download_dir") or ".", DOWNLOAD_HISTORY_SIZE)

        self._new_window_lock = threading.Lock()
        self._new_window_url: Optional[str] = None
        self._redirected_targets: deque = deque(maxlen=32)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def initialized(self) -> bool:
        return self.driver is not None and self._channel is not None and not self._channel.closed

    @property
    def action_gate(self) -> asyncio.Lock:
        """The single mutual-exclusion gate shared by every action."""
        if self._action_gate is None:
            self._action_gate = asyncio.Lock()
        return self._action_gate

    def _get_init_lock(self) -> asyncio.Lock:
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    def get_debugger_address(self) -> Optional[str]:
        if self.debugger_port is None:
            return None
        return f"{self.debugger_host}:{self.debugger_port}"

    @property
    def new_window_url(self) -> Optional[str]:
        with self._new_window_lock:
            return self._new_window_url

    def take_new_window_url(self) -> Optional[str]:
        """Return and clear the last redirected pop-up URL."""
        with self._new_window_lock:
            url, self._new_window_url = self._new_window_url, None
        return url

    # ------------------------------------------------------------------ #
    # Engine thread marshaling
    # ------------------------------------------------------------------ #

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix="engine",
                initializer=self._mark_engine_thread,
            )
        return self._executor

    def _mark_engine_thread(self) -> None:
        self._engine_thread_id = threading.get_ident()

    def on_engine_thread(self) -> bool:
        return self._engine_thread_id is not None and threading.get_ident() == self._engine_thread_id

    async def invoke(self, fn: Callable, *args, **kwargs):
        """Run fn on the engine thread and resume the caller with its result or exception."""
        if self.on_engine_thread():
            return fn(*args, **kwargs)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._ensure_executor(), functools.partial(fn, *args, **kwargs))

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def set_surface_handle(self, handle: Any) -> None:
        """Remember the host window for lazy initialization."""
        if handle:
            self._pending_surface = handle

    async def ensure_initialized(self) -> None:
        """
        Initialize on first use with the remembered surface handle.

        Raises:
            EngineUnavailableError: If no surface is attached or startup fails
        """
        if self.initialized:
            return
        if not self._pending_surface:
            raise EngineUnavailableError("Browser view is not attached yet; no surface handle is available.")
        await self.initialize(self._pending_surface)

    async def initialize(self, surface_handle: Any) -> None:
        """
        Start the engine bound to surface_handle. Idempotent.

        Concurrent first callers share one startup. A failed startup tears down
        whatever was created and leaves the session ready for another attempt.
        """
        async with self._get_init_lock():
            if self.initialized:
                return
            try:
                await self.invoke(self._start_engine)
            except Exception as e:
                logger.warning("Engine startup failed: %s", e)
                await self.invoke(self._teardown)
                raise EngineUnavailableError(f"Browser engine failed to start: {e}") from e
            self.surface_handle = surface_handle
            self._pending_surface = surface_handle
            logger.info("Engine ready on %s (surface %s)", self.get_debugger_address(), surface_handle)

    def _start_engine(self) -> None:
        # Release what a lost engine left behind before starting another.
        if self.driver is not None or self._proc is not None or self._channel is not None:
            self._teardown()

        cfg = self.config
        user_data_dir = cfg["user_data_dir"]
        Path(user_data_dir).mkdir(parents=True, exist_ok=True)
        Path(cfg.get("download_dir") or ".").mkdir(parents=True, exist_ok=True)

        host = self.debugger_host
        port = devtools_active_port_from_file(user_data_dir)
        if port and is_debugger_listening(host, port, timeout=1.0):
            logger.info("Attaching to running engine on port %s", port)
        else:
            port = cfg.get("fixed_port") or get_free_port()
            binary = get_chrome_binary_for_platform(cfg)
            cmd = build_engine_command(binary, port, user_data_dir, headless=bool(cfg.get("headless")))
            self._proc = launch_browser_process(cmd, port)
            if not wait_for_devtools_ready(host, port, DEVTOOLS_READY_WAIT_SECS, self._proc):
                raise RuntimeError(f"DevTools endpoint did not appear on port {port}")

        self.debugger_port = port
        self.driver = create_webdriver(host, port, cfg)
        self.target_id = current_target_id(self.driver)
        self._open_event_channel()

    def _open_event_channel(self) -> None:
        info = browser_version_info(self.debugger_host, self.debugger_port) or {}
        ws_url = info.get("webSocketDebuggerUrl")
        if not ws_url:
            raise DevToolsError("Browser did not report a DevTools websocket URL")

        channel = DevToolsChannel(ws_url).connect()
        channel.start_event_pump(self._on_devtools_event, name="engine-events")
        self._channel = channel

        attached = channel.call("Target.attachToTarget", {"targetId": self.target_id, "flatten": True},
                                timeout=DEVTOOLS_CALL_TIMEOUT_SECS)
        self.page_session_id = attached.get("sessionId")
        channel.call("Page.enable", session_id=self.page_session_id, timeout=DEVTOOLS_CALL_TIMEOUT_SECS)
        channel.call("Target.setDiscoverTargets", {"discover": True}, timeout=DEVTOOLS_CALL_TIMEOUT_SECS)
        channel.call(
            "Browser.setDownloadBehavior",
            {
                "behavior": "allow",
                "downloadPath": str(Path(self.downloads.download_dir).resolve()),
                "eventsEnabled": True,
            },
            timeout=DEVTOOLS_CALL_TIMEOUT_SECS,
        )

    def _teardown(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()

        driver, self.driver = self.driver, None
        if driver is not None:
            try:
                driver.quit()
            except WebDriverException as e:
                logger.debug("driver.quit() failed: %s", e)

        proc, self._proc = self._proc, None
        if proc is not None:
            kill_process_tree(proc.pid)

        self.target_id = None
        self.page_session_id = None
        self.debugger_port = None

    async def dispose(self) -> None:
        """Shut the engine down. A later ensure_initialized() starts a fresh one."""
        if self._executor is None:
            return
        await self.invoke(self._teardown)
        executor, self._executor = self._executor, None
        executor.shutdown(wait=False)
        self._engine_thread_id = None
        self.surface_handle = None
        logger.info("Engine disposed")

    async def set_bounds(self, x: int, y: int, width: int, height: int) -> None:
        """Apply host bounds to the engine surface."""
        await self.ensure_initialized()
        await self.invoke(self.driver.set_window_rect, x=x, y=y, width=width, height=height)

    # ------------------------------------------------------------------ #
    # Events (event pump thread)
    # ------------------------------------------------------------------ #

    def _on_devtools_event(self, message: dict) -> None:
        method = message.get("method")
        params = message.get("params") or {}
        session_id = message.get("sessionId")

        if session_id is not None:
            if session_id != self.page_session_id:
                return
            if method == "Page.loadEventFired":
                self.load_signal.fire(True)
            elif method == "Page.frameNavigated":
                frame = params.get("frame") or {}
                if not frame.get("parentId"):
                    self.url_signal.fire(frame.get("url"))
            elif method == "Page.navigatedWithinDocument":
                if params.get("frameId") == self.target_id:
                    self.url_signal.fire(params.get("url"))
            return

        if method in ("Target.targetCreated", "Target.targetInfoChanged"):
            self._redirect_popup(params.get("targetInfo") or {})
        elif method == "Browser.downloadWillBegin":
            download = self.downloads.on_will_begin(params)
            if download is not None:
                self.download_signal.fire(download.path)
        elif method == "Browser.downloadProgress":
            self.downloads.on_progress(params)

    def _redirect_popup(self, info: dict) -> None:
        """Close a pop-up target and load its URL in the main page instead."""
        target_id = info.get("targetId")
        url = info.get("url") or ""
        if info.get("type") != "page" or not info.get("openerId") or target_id == self.target_id:
            return
        # Pop-ups start on about:blank; wait for the info change carrying the real URL.
        if not url or url == "about:blank" or target_id in self._redirected_targets:
            return
        self._redirected_targets.append(target_id)
        with self._new_window_lock:
            self._new_window_url = url
        logger.info("Redirecting new window into main view: %s", url)

        channel = self._channel
        if channel is None:
            return
        try:
            channel.send("Target.closeTarget", {"targetId": target_id})
            channel.send("Page.navigate", {"url": url}, session_id=self.page_session_id)
        except DevToolsError as e:
            logger.warning("Pop-up redirect failed: %s", e)

    # ------------------------------------------------------------------ #
    # Page operations (callers hold the action gate)
    # ------------------------------------------------------------------ #

    async def _await_navigation(self, start: Callable[[], Any], timeout: float) -> NavigationOutcome:
        load = self.load_signal.arm()
        changed = self.url_signal.arm()
        download = self.download_signal.arm()
        started = time.monotonic()
        try:
            result = await self.invoke(start)
            error = (result or {}).get("errorText") if isinstance(result, dict) else None
            if error:
                # Download URLs abort the navigation; give the download event a moment to land.
                await wait_any([download], 1.0)
                return NavigationOutcome(False, time.monotonic() - started, error)
            done = await wait_any([load, changed, download], timeout)
        finally:
            self.load_signal.disarm(load)
            self.url_signal.disarm(changed)
            self.download_signal.disarm(download)
        if done is not None:
            await asyncio.sleep(NAVIGATION_SETTLE_SECS)
        return NavigationOutcome(done is not None, time.monotonic() - started)

    async def navigate(self, url: str, timeout: float) -> NavigationOutcome:
        """Navigate and wait for load-completed, URL-change or download-start, whichever comes first."""
        return await self._await_navigation(
            lambda: self.driver.execute_cdp_cmd("Page.navigate", {"url": url}),
            timeout,
        )

    async def go_back(self, timeout: float) -> Optional[NavigationOutcome]:
        """Go one entry back in history. Returns None when there is no previous page."""
        history = await self.invoke(self.driver.execute_cdp_cmd, "Page.getNavigationHistory", {})
        index = int(history.get("currentIndex", 0))
        entries = history.get("entries") or []
        if not entries or index <= 0:
            return None
        entry_id = entries[index - 1]["id"]
        return await self._await_navigation(
            lambda: self.driver.execute_cdp_cmd("Page.navigateToHistoryEntry", {"entryId": entry_id}),
            timeout,
        )

    async def page_info(self) -> Tuple[str, str]:
        """Current (url, title) of the controlled page."""
        return await self.invoke(lambda: (self.driver.current_url or "about:blank", self.driver.title or ""))

    async def run_script(self, script: str, *args):
        """
        Execute a synchronous page script with arguments bound to ``arguments[i]``.

        Raises:
            ScriptExecutionError: If the script throws in the page
        """
        try:
            return await self.invoke(retry_op, lambda: self.driver.execute_script(script, *args))
        except JavascriptException as e:
            raise ScriptExecutionError(getattr(e, "msg", None) or str(e)) from e

    async def evaluate(self, expression: str) -> dict:
        """Evaluate an expression in the page, awaiting promises. Returns the raw protocol result."""
        return await self.invoke(
            self.driver.execute_cdp_cmd,
            "Runtime.evaluate",
            {
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": True,
                "userGesture": True,
            },
        )

    async def execute_cdp(self, method: str, params: Optional[dict] = None) -> dict:
        """Protocol-level command on the controlled page."""
        return await self.invoke(self.driver.execute_cdp_cmd, method, params or {})

    async def add_cookie(self, cookie: dict) -> None:
        """Native controller cookie API."""
        await self.invoke(self.driver.add_cookie, cookie)

    async def wait_for_download_start(self, timeout: float) -> Optional[str]:
        """Wait for the next download-start event. Returns its path or None on timeout."""
        fut = self.download_signal.arm()
        try:
            done = await wait_any([fut], timeout)
        finally:
            self.download_signal.disarm(fut)
        return fut.result() if done is not None else None

    def describe(self) -> dict:
        """State summary for diagnostics."""
        return {
            "initialized": self.initialized,
            "debugger": self.get_debugger_address(),
            "target_id": self.target_id,
            "surface_handle": self.surface_handle,
            "user_data_dir": self.config.get("user_data_dir"),
            "download_dir": self.downloads.download_dir,
            "recent_downloads": len(self.downloads),
            "launched_pid": self._proc.pid if self._proc is not None else None,
        }


__all__ = ["EngineSession", "NavigationOutcome"]
