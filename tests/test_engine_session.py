# tests/test_engine_session.py
import asyncio
import threading
import time
from unittest.mock import MagicMock

import pytest
from selenium.common.exceptions import JavascriptException

import mcp_embedded_browser.engine.session as session_mod
from mcp_embedded_browser.engine.session import EngineSession
from mcp_embedded_browser.errors import EngineUnavailableError, ScriptExecutionError

## We DO NOT want to use pytest-asyncio.
## Instead, use event_loop.run_until_complete()!


@pytest.fixture(scope="function")
def event_loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture
def session(tmp_path, monkeypatch):
    """A session wired to mock driver and channel, as if the engine had started."""
    monkeypatch.setattr(session_mod, "NAVIGATION_SETTLE_SECS", 0)
    s = EngineSession({"user_data_dir": str(tmp_path / "profile"), "download_dir": str(tmp_path / "dl")})
    s.driver = MagicMock()
    s._channel = MagicMock(closed=False)
    s.target_id = "MAIN"
    s.page_session_id = "S1"
    yield s
    if s._executor is not None:
        s._executor.shutdown(wait=True)


def page_event(method, params=None, session_id="S1"):
    return {"method": method, "params": params or {}, "sessionId": session_id}


def test_navigation_completes_on_load_event(event_loop, session):
    def navigate(method, params):
        session._on_devtools_event(page_event("Page.loadEventFired"))
        return {"frameId": "MAIN"}

    session.driver.execute_cdp_cmd.side_effect = navigate
    outcome = event_loop.run_until_complete(session.navigate("https://example.com", 2.0))
    assert outcome.completed and outcome.error is None
    session.driver.execute_cdp_cmd.assert_called_once_with("Page.navigate", {"url": "https://example.com"})


def test_navigation_completes_on_same_document_url_change(event_loop, session):
    def navigate(method, params):
        session._on_devtools_event(page_event("Page.navigatedWithinDocument", {"frameId": "MAIN", "url": params["url"]}))
        return {}

    session.driver.execute_cdp_cmd.side_effect = navigate
    outcome = event_loop.run_until_complete(session.navigate("https://mail.google.com/#inbox", 2.0))
    assert outcome.completed


def test_navigation_timeout_is_not_an_error(event_loop, session):
    session.driver.execute_cdp_cmd.return_value = {"frameId": "MAIN"}
    outcome = event_loop.run_until_complete(session.navigate("https://slow.example.com", 0.05))
    assert not outcome.completed and outcome.error is None


def test_events_from_other_sessions_are_ignored(event_loop, session):
    def navigate(method, params):
        session._on_devtools_event(page_event("Page.loadEventFired", session_id="OTHER"))
        session._on_devtools_event(page_event("Page.frameNavigated", {"frame": {"parentId": "MAIN", "url": "x"}}))
        return {}

    session.driver.execute_cdp_cmd.side_effect = navigate
    outcome = event_loop.run_until_complete(session.navigate("https://example.com", 0.05))
    assert not outcome.completed


def test_navigation_error_text(event_loop, session):
    session.driver.execute_cdp_cmd.return_value = {"frameId": "MAIN", "errorText": "net::ERR_NAME_NOT_RESOLVED"}
    outcome = event_loop.run_until_complete(session.navigate("https://nope.invalid", 2.0))
    assert outcome.error == "net::ERR_NAME_NOT_RESOLVED"
    assert not session.load_signal.armed


def test_late_load_event_does_not_complete_next_navigation(event_loop, session):
    session.driver.execute_cdp_cmd.return_value = {}
    event_loop.run_until_complete(session.navigate("https://a.example.com", 0.02))
    # Arrives after the first wait gave up.
    assert session.load_signal.fire(True) is False


def test_go_back_without_history(event_loop, session):
    session.driver.execute_cdp_cmd.return_value = {"currentIndex": 0, "entries": [{"id": 1}]}
    assert event_loop.run_until_complete(session.go_back(1.0)) is None


def test_go_back_uses_previous_entry(event_loop, session):
    calls = []

    def cdp(method, params):
        calls.append((method, params))
        if method == "Page.getNavigationHistory":
            return {"currentIndex": 2, "entries": [{"id": 10}, {"id": 11}, {"id": 12}]}
        session._on_devtools_event(page_event("Page.loadEventFired"))
        return {}

    session.driver.execute_cdp_cmd.side_effect = cdp
    outcome = event_loop.run_until_complete(session.go_back(2.0))
    assert outcome.completed
    assert calls[-1] == ("Page.navigateToHistoryEntry", {"entryId": 11})


def test_popup_is_redirected_into_main_view(session):
    blank = {"targetId": "POP", "type": "page", "openerId": "MAIN", "url": "about:blank"}
    session._on_devtools_event({"method": "Target.targetCreated", "params": {"targetInfo": blank}})
    session._channel.send.assert_not_called()

    real = dict(blank, url="https://popup.example.com/")
    session._on_devtools_event({"method": "Target.targetInfoChanged", "params": {"targetInfo": real}})
    session._on_devtools_event({"method": "Target.targetInfoChanged", "params": {"targetInfo": real}})

    assert session._channel.send.call_count == 2
    close_call, navigate_call = session._channel.send.call_args_list
    assert close_call.args == ("Target.closeTarget", {"targetId": "POP"})
    assert navigate_call.args == ("Page.navigate", {"url": "https://popup.example.com/"})
    assert navigate_call.kwargs == {"session_id": "S1"}
    assert session.take_new_window_url() == "https://popup.example.com/"
    assert session.take_new_window_url() is None


def test_non_popup_targets_are_left_alone(session):
    for info in (
        {"targetId": "W", "type": "service_worker", "openerId": "MAIN", "url": "https://x/sw.js"},
        {"targetId": "T2", "type": "page", "url": "https://tab.example.com"},
        {"targetId": "MAIN", "type": "page", "openerId": "MAIN", "url": "https://self.example.com"},
    ):
        session._on_devtools_event({"method": "Target.targetCreated", "params": {"targetInfo": info}})
    session._channel.send.assert_not_called()
    assert session.new_window_url is None


def test_download_events_feed_tracker_and_signal(event_loop, session):
    def emit():
        session._on_devtools_event({"method": "Browser.downloadWillBegin",
                                    "params": {"guid": "g1", "suggestedFilename": "a.csv", "url": "https://x/a.csv"}})
        session._on_devtools_event({"method": "Browser.downloadProgress",
                                    "params": {"guid": "g1", "state": "completed", "receivedBytes": 5, "totalBytes": 5}})

    async def scenario():
        waiter = asyncio.ensure_future(session.wait_for_download_start(2.0))
        await asyncio.sleep(0)
        emitter.start()
        return await waiter

    emitter = threading.Thread(target=emit)
    path = event_loop.run_until_complete(scenario())
    emitter.join(timeout=2.0)
    assert path.endswith("a.csv")
    download = session.downloads.latest()
    assert download.is_terminal and download.bytes_received == 5


def test_download_start_wait_times_out(event_loop, session):
    assert event_loop.run_until_complete(session.wait_for_download_start(0.02)) is None


def test_script_errors_are_typed(event_loop, session):
    session.driver.execute_script.side_effect = JavascriptException("ReferenceError: x is not defined")
    with pytest.raises(ScriptExecutionError):
        event_loop.run_until_complete(session.run_script("return x;"))


def test_invoke_runs_on_one_engine_thread(event_loop, session):
    async def scenario():
        return [await session.invoke(threading.get_ident) for _ in range(3)]

    idents = event_loop.run_until_complete(scenario())
    assert len(set(idents)) == 1 and idents[0] != threading.get_ident()


def test_describe(session):
    info = session.describe()
    assert info["initialized"] is True
    assert info["target_id"] == "MAIN"
    assert info["recent_downloads"] == 0


@pytest.fixture
def cold_session(tmp_path, monkeypatch):
    """A session that has never started an engine."""
    killed = MagicMock()
    monkeypatch.setattr(session_mod, "kill_process_tree", killed)
    s = EngineSession({"user_data_dir": str(tmp_path / "profile"), "download_dir": str(tmp_path / "dl")})
    s.killed = killed
    yield s
    if s._executor is not None:
        s._executor.shutdown(wait=True)


def _mark_started(s):
    s.driver = MagicMock()
    s._channel = MagicMock(closed=False)


def test_concurrent_first_use_starts_engine_once(event_loop, cold_session):
    s = cold_session
    starts = []

    def start():
        starts.append(threading.get_ident())
        time.sleep(0.05)
        _mark_started(s)

    s._start_engine = start

    async def scenario():
        await asyncio.gather(*(s.initialize("0x1") for _ in range(5)))

    event_loop.run_until_complete(scenario())
    assert len(starts) == 1
    assert s.initialized
    assert s.surface_handle == "0x1"


def test_failed_startup_tears_down_and_allows_retry(event_loop, cold_session):
    s = cold_session
    attempts = []

    def start():
        attempts.append(1)
        if len(attempts) == 1:
            s._proc = MagicMock(pid=4242)
            raise RuntimeError("DevTools endpoint did not appear on port 9333")
        _mark_started(s)

    s._start_engine = start

    with pytest.raises(EngineUnavailableError) as exc:
        event_loop.run_until_complete(s.initialize("0x1"))
    assert "DevTools endpoint did not appear" in str(exc.value)
    assert not s.initialized
    assert s._proc is None
    s.killed.assert_called_once_with(4242)
    assert s.surface_handle is None

    event_loop.run_until_complete(s.initialize("0x1"))
    assert len(attempts) == 2
    assert s.initialized


def test_restart_after_lost_engine_releases_old_one(event_loop, cold_session, monkeypatch):
    s = cold_session
    old_driver, old_channel, old_proc = MagicMock(), MagicMock(closed=True), MagicMock(pid=111)
    s.driver, s._channel, s._proc = old_driver, old_channel, old_proc
    assert not s.initialized

    new_driver, new_proc = MagicMock(), MagicMock(pid=222)
    monkeypatch.setattr(session_mod, "devtools_active_port_from_file", lambda user_data_dir: None)
    monkeypatch.setattr(session_mod, "get_free_port", lambda: 9333)
    monkeypatch.setattr(session_mod, "get_chrome_binary_for_platform", lambda cfg: "/opt/chrome")
    monkeypatch.setattr(session_mod, "build_engine_command", lambda *a, **k: ["/opt/chrome"])
    monkeypatch.setattr(session_mod, "launch_browser_process", lambda cmd, port: new_proc)
    monkeypatch.setattr(session_mod, "wait_for_devtools_ready", lambda *a: True)
    monkeypatch.setattr(session_mod, "create_webdriver", lambda host, port, cfg: new_driver)
    monkeypatch.setattr(session_mod, "current_target_id", lambda driver: "NEW")

    def open_channel():
        s._channel = MagicMock(closed=False)

    s._open_event_channel = open_channel

    event_loop.run_until_complete(s.initialize("0x1"))

    old_channel.close.assert_called_once()
    old_driver.quit.assert_called_once()
    s.killed.assert_called_once_with(111)
    assert s.driver is new_driver
    assert s._proc is new_proc
    assert s.target_id == "NEW"
    assert s.debugger_port == 9333


def test_set_bounds_runs_on_engine_thread(event_loop, session):
    threads = []
    session.driver.set_window_rect.side_effect = lambda **kw: threads.append(threading.get_ident())

    event_loop.run_until_complete(session.set_bounds(10, 20, 800, 600))

    session.driver.set_window_rect.assert_called_once_with(x=10, y=20, width=800, height=600)
    assert threads == [session._engine_thread_id]
    assert threads[0] != threading.get_ident()
