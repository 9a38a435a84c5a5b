# tests/test_cookie_importer.py
import os
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from selenium.common.exceptions import WebDriverException

import mcp_embedded_browser.cookies.importer as importer_mod
from mcp_embedded_browser.cookies import CookieImporter, CookieRecord, SameSite
from mcp_embedded_browser.cookies.importer import (
    get_cookie_host_candidates,
    normalize_cookie_path,
    records_from_rows,
    score_cookie_names,
    session_cookie_score,
)
from mcp_embedded_browser.cookies.models import BrowserProfile
from mcp_embedded_browser.cookies.remote_debug import parse_devtools_cookies
from mcp_embedded_browser.cookies.store import RawCookieRow
from mcp_embedded_browser.errors import DevToolsError

from _utils import make_browser, make_cookie_db

## We DO NOT want to use pytest-asyncio.
## Instead, use event_loop.run_until_complete()!


@pytest.fixture(scope="function")
def event_loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


class FakeCookieSession:
    """Records protocol and native cookie writes."""

    def __init__(self, accept_protocol=lambda payload: True, accept_native=lambda cookie: True):
        self.action_gate = asyncio.Lock()
        self.accept_protocol = accept_protocol
        self.accept_native = accept_native
        self.protocol_calls = []
        self.native_calls = []
        self.initialized = False

    async def ensure_initialized(self):
        self.initialized = True

    async def execute_cdp(self, method, params=None):
        if method == "Network.enable":
            raise DevToolsError("Network domain unavailable")
        self.protocol_calls.append(params)
        return {"success": self.accept_protocol(params)}

    async def add_cookie(self, cookie):
        self.native_calls.append(cookie)
        if not self.accept_native(cookie):
            raise WebDriverException("invalid cookie domain")


def _row(name, value="", encrypted=b"", host=".example.com", same_site=-1, expires=0):
    return RawCookieRow(host, name, encrypted, value, "/", False, False, same_site, expires)


def test_host_candidates():
    assert get_cookie_host_candidates(".example.com") == [".example.com", "example.com"]
    assert get_cookie_host_candidates("example.com") == ["example.com"]
    assert get_cookie_host_candidates("example.com:8080") == ["example.com"]
    assert get_cookie_host_candidates("[::1]:9222") == ["[::1]"]
    assert get_cookie_host_candidates("  ") == []
    assert get_cookie_host_candidates(None) == []
    assert get_cookie_host_candidates("...") == []


def test_host_candidates_are_idempotent():
    for host in (".example.com", "sub.example.com:443", "[::1]"):
        for candidate in get_cookie_host_candidates(host):
            assert get_cookie_host_candidates(candidate)[0] == candidate


def test_cookie_path_normalization():
    assert normalize_cookie_path("") == "/"
    assert normalize_cookie_path(None) == "/"
    assert normalize_cookie_path("account") == "/account"
    assert normalize_cookie_path("/a/b") == "/a/b"


def test_same_site_mappings():
    assert SameSite.from_chrome_code(-1) is SameSite.NONE
    assert SameSite.from_chrome_code(0) is SameSite.NONE
    assert SameSite.from_chrome_code(1) is SameSite.LAX
    assert SameSite.from_chrome_code(2) is SameSite.STRICT
    assert SameSite.from_protocol("Strict") is SameSite.STRICT
    assert SameSite.from_protocol("Lax") is SameSite.LAX
    assert SameSite.from_protocol("None") is SameSite.NONE
    assert SameSite.from_protocol(None) is SameSite.NONE


def test_records_from_rows():
    key = bytes(range(32))
    nonce = os.urandom(12)
    encrypted = b"v10" + nonce + AESGCM(key).encrypt(nonce, b"secret", None)
    rows = [
        _row("enc", encrypted=encrypted, same_site=2),
        _row("plain", value="visible"),
        _row("undecryptable", encrypted=b"v20" + os.urandom(40)),
        _row("empty"),
    ]
    records = records_from_rows(rows, key)
    assert [(r.name, r.value) for r in records] == [("enc", "secret"), ("plain", "visible")]
    assert records[0].same_site is SameSite.STRICT
    assert records[1].is_session


def test_score_cookie_names():
    names = ["SID", "HSID", "__Secure-1PSID", "CUSTOM_psid_x", "NID", "SID"]
    assert score_cookie_names(names, weight=10, partial_weight=2) == 32
    assert score_cookie_names([]) == 0


def test_session_score_from_profile_database(tmp_path):
    browser = make_browser(tmp_path / "User Data")
    make_cookie_db(tmp_path / "User Data" / "Default" / "Network" / "Cookies", [
        (".google.com", "SID", b"", "a", "/", 1, 1, 0, 0),
        (".google.com", "__Secure-3PSID", b"", "b", "/", 1, 1, 0, 0),
        ("accounts.google.com", "LSOLH_SID", b"", "c", "/", 1, 1, 0, 0),
        (".google.com", "NID", b"", "d", "/", 1, 1, 0, 0),
        (".example.com", "HSID", b"", "e", "/", 1, 1, 0, 0),
    ])
    profile = BrowserProfile("Person 1", "Default", browser)
    assert session_cookie_score(profile) == 22


def test_session_score_without_database(tmp_path):
    profile = BrowserProfile("Person 1", "Default", make_browser(tmp_path / "User Data"))
    assert session_cookie_score(profile) == 0


def test_parse_devtools_cookies():
    response = {"id": 1, "result": {"cookies": [
        {"name": "SID", "value": "abc", "domain": ".google.com", "path": "/", "expires": 1893456000,
         "secure": True, "httpOnly": True, "sameSite": "Strict"},
        {"name": "tmp", "value": "1", "domain": "example.com", "expires": -1},
        {"name": "", "value": "x", "domain": "example.com"},
        {"name": "nodomain", "value": "x", "domain": ""},
    ]}}
    cookies = parse_devtools_cookies(response)
    assert [c.name for c in cookies] == ["SID", "tmp"]
    assert cookies[0].same_site is SameSite.STRICT
    assert cookies[0].expires == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert cookies[1].is_session and cookies[1].same_site is SameSite.NONE
    assert parse_devtools_cookies(None) == []


def test_import_without_cookie_file_is_zero(event_loop, tmp_path):
    session = FakeCookieSession()
    profile = BrowserProfile("Person 1", "Default", make_browser(tmp_path / "User Data"))
    assert event_loop.run_until_complete(CookieImporter(session).import_cookies(profile)) == 0
    assert not session.initialized


def test_import_reads_database_without_live_extraction(event_loop, tmp_path, monkeypatch):
    browser = make_browser(tmp_path / "User Data")
    make_cookie_db(tmp_path / "User Data" / "Default" / "Network" / "Cookies", [
        (".example.com", "a", b"", "1", "/", 1, 0, 0, 0),
        ("example.org", "b", b"", "2", "/docs", 0, 1, 1, 0),
    ])

    def no_extraction(profile):
        raise AssertionError("live extraction should not run")

    monkeypatch.setattr(importer_mod, "extract_cookies_via_devtools", no_extraction)
    session = FakeCookieSession()
    profile = BrowserProfile("Person 1", "Default", browser)

    assert event_loop.run_until_complete(CookieImporter(session).import_cookies(profile)) == 2
    assert session.initialized
    assert [(p["domain"], p["path"], p["sameSite"]) for p in session.protocol_calls] == [
        (".example.com", "/", "None"),
        ("example.org", "/docs", "Lax"),
    ]


def test_import_falls_back_to_live_extraction(event_loop, tmp_path, monkeypatch):
    browser = make_browser(tmp_path / "User Data")
    make_cookie_db(tmp_path / "User Data" / "Default" / "Cookies", [])
    extracted = [CookieRecord(".example.com", "live", "v")]
    monkeypatch.setattr(importer_mod, "extract_cookies_via_devtools", lambda profile: extracted)

    session = FakeCookieSession()
    profile = BrowserProfile("Person 1", "Default", browser)
    assert event_loop.run_until_complete(CookieImporter(session).import_cookies(profile)) == 1
    assert session.protocol_calls[0]["name"] == "live"


def test_native_fallback_downgrades_insecure_same_site_none(event_loop):
    session = FakeCookieSession(accept_protocol=lambda payload: False)
    expires = datetime.now(timezone.utc) + timedelta(days=30)
    cookie = CookieRecord("example.com", "pref", "1", path="", secure=False, same_site=SameSite.NONE, expires=expires)

    count = event_loop.run_until_complete(CookieImporter(session).import_records([cookie]))
    assert count == 1
    native = session.native_calls[0]
    assert native["sameSite"] == "Lax"
    assert native["path"] == "/"
    assert native["expiry"] == int(expires.timestamp())
    assert session.protocol_calls[0]["sameSite"] == "None"
    assert session.protocol_calls[0]["expires"] == int(expires.timestamp())


def test_native_fallback_omits_past_expiry(event_loop):
    session = FakeCookieSession(accept_protocol=lambda payload: False)
    expired = datetime(2001, 1, 1, tzinfo=timezone.utc)
    cookie = CookieRecord("example.com", "old", "1", secure=True, same_site=SameSite.NONE, expires=expired)

    event_loop.run_until_complete(CookieImporter(session).import_records([cookie]))
    assert "expiry" not in session.native_calls[0]
    assert session.native_calls[0]["sameSite"] == "None"
    assert session.protocol_calls[0]["expires"] == int(expired.timestamp())


def test_protocol_success_skips_native(event_loop):
    session = FakeCookieSession()
    cookie = CookieRecord(".example.com", "sid", "1", secure=True)
    assert event_loop.run_until_complete(CookieImporter(session).import_records([cookie])) == 1
    assert session.native_calls == []
    assert len(session.protocol_calls) == 1


def test_second_host_candidate_is_tried(event_loop):
    session = FakeCookieSession(
        accept_protocol=lambda payload: payload["domain"] == "example.com",
        accept_native=lambda cookie: False,
    )
    cookie = CookieRecord(".example.com", "sid", "1")
    assert event_loop.run_until_complete(CookieImporter(session).import_records([cookie])) == 1
    assert [p["domain"] for p in session.protocol_calls] == [".example.com", "example.com"]
    assert [c["domain"] for c in session.native_calls] == [".example.com"]


def test_rejected_everywhere_is_not_counted(event_loop):
    session = FakeCookieSession(accept_protocol=lambda payload: False, accept_native=lambda cookie: False)
    cookies = [CookieRecord("example.com", "a", "1"), CookieRecord("", "b", "2"), CookieRecord("example.com", "", "3")]
    assert event_loop.run_until_complete(CookieImporter(session).import_records(cookies)) == 0
    assert len(session.protocol_calls) == 1
