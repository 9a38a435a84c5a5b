"""
Import cookies from a locally installed browser profile into the engine.

Order per profile: decrypt the stored database directly; if that yields
nothing, ask a headless instance of the browser over the remote-debugging
protocol; if that yields nothing too, nothing is imported.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from selenium.common.exceptions import WebDriverException

from ..constants import AUTH_COOKIE_WEIGHT, PARTIAL_AUTH_COOKIE_WEIGHT
from ..errors import BrowserControllerError, CookieStoreError
from .browsers import find_cookie_file
from .crypto import decrypt_cookie_value, load_master_key
from .models import BrowserProfile, CookieRecord, SameSite
from .remote_debug import extract_cookies_via_devtools
from .store import RawCookieRow, chrome_time_to_datetime, distinct_cookie_names, private_copy, read_cookie_rows

import logging
logger = logging.getLogger(__name__)


GOOGLE_AUTH_COOKIE_NAMES = frozenset({
    "SID",
    "HSID",
    "SSID",
    "APISID",
    "SAPISID",
    "LSID",
    "__Secure-1PSID",
    "__Secure-3PSID",
    "__Secure-1PSIDTS",
    "__Secure-3PSIDTS",
    "__Host-GAPS",
})
_PARTIAL_AUTH_MARKERS = ("PSID", "SAPISID", "SID")


def get_cookie_host_candidates(host: Optional[str]) -> List[str]:
    """
    Domains to try when setting a cookie for host.

    Any port is dropped (bracketed IPv6 literals are kept whole). A
    leading-dot domain yields both the dotted and the bare form, dotted first.

    >>> get_cookie_host_candidates(".example.com")
    ['.example.com', 'example.com']
    >>> get_cookie_host_candidates("example.com:8080")
    ['example.com']
    """
    normalized = (host or "").strip()
    if not normalized:
        return []

    if normalized.startswith("["):
        closing = normalized.find("]")
        if closing > 0:
            normalized = normalized[:closing + 1]
    else:
        colon = normalized.find(":")
        if colon > 0:
            normalized = normalized[:colon]

    bare = normalized.lstrip(".")
    if not bare:
        return []
    if normalized.startswith("."):
        return ["." + bare, bare]
    return [bare]


def normalize_cookie_path(path: Optional[str]) -> str:
    path = (path or "").strip() or "/"
    return path if path.startswith("/") else "/" + path


def records_from_rows(rows: Iterable[RawCookieRow], master_key: Optional[bytes]) -> List[CookieRecord]:
    """Decrypt database rows; rows whose value cannot be recovered are skipped."""
    records = []
    skipped = 0
    for row in rows:
        enc = row.encrypted_value
        if isinstance(enc, (bytes, bytearray, memoryview)) and len(enc) > 0:
            value = decrypt_cookie_value(bytes(enc), master_key)
        elif row.value:
            value = row.value
        elif isinstance(enc, str) and enc:
            value = enc
        else:
            continue
        if value is None:
            skipped += 1
            continue
        records.append(
            CookieRecord(
                host=row.host,
                name=row.name,
                value=value,
                path=row.path,
                secure=row.secure,
                http_only=row.http_only,
                same_site=SameSite.from_chrome_code(row.same_site),
                expires=chrome_time_to_datetime(row.expires_utc),
            )
        )
    if skipped:
        logger.debug("Skipped %d cookies that could not be decrypted", skipped)
    return records


def read_profile_cookies(profile: BrowserProfile) -> List[CookieRecord]:
    """Decrypt a profile's cookie database directly. [] when it cannot be read."""
    cookie_file = find_cookie_file(profile.path)
    if cookie_file is None:
        return []

    master_key = load_master_key(profile.browser.user_data_path)
    try:
        with private_copy(cookie_file, profile.browser.process_names) as db_path:
            rows = read_cookie_rows(db_path)
    except CookieStoreError as e:
        logger.warning("Direct cookie read for %s / %s failed: %s", profile.browser.name, profile.folder, e)
        return []
    return records_from_rows(rows, master_key)


def score_cookie_names(
    names: Iterable[str],
    weight: int = AUTH_COOKIE_WEIGHT,
    partial_weight: int = PARTIAL_AUTH_COOKIE_WEIGHT,
) -> int:
    """Known auth-cookie names weigh `weight`; other SID-like names weigh `partial_weight`."""
    score = 0
    for name in set(names):
        if name in GOOGLE_AUTH_COOKIE_NAMES:
            score += weight
        elif any(marker in name.upper() for marker in _PARTIAL_AUTH_MARKERS):
            score += partial_weight
    return score


def session_cookie_score(profile: BrowserProfile) -> int:
    """
    How likely a profile is signed in to Google, without importing anything.

    Returns:
        int: Weighted count of auth-looking cookie names; 0 on any failure
    """
    cookie_file = find_cookie_file(profile.path)
    if cookie_file is None:
        return 0
    try:
        with private_copy(cookie_file, profile.browser.process_names) as db_path:
            names = distinct_cookie_names(db_path, "%google.%")
    except (CookieStoreError, OSError) as e:
        logger.warning("Session cookie score for %s / %s failed: %s", profile.browser.name, profile.folder, e)
        return 0
    return score_cookie_names(names)


class CookieImporter:
    """
    Writes CookieRecords into the engine session's cookie store.

    Args:
        session: EngineSession; cookie writes hold its action gate
    """

    def __init__(self, session):
        self.session = session

    async def import_cookies(self, profile: BrowserProfile) -> int:
        """
        Import one profile's cookies.

        Returns:
            int: Number of cookies imported; 0 when the profile has none reachable
        """
        if find_cookie_file(profile.path) is None:
            logger.info("No cookie database for %s / %s", profile.browser.name, profile.folder)
            return 0

        loop = asyncio.get_running_loop()
        cookies = await loop.run_in_executor(None, read_profile_cookies, profile)
        source = "database"
        if not cookies:
            logger.info("No directly decryptable cookies in %s / %s; trying live extraction",
                        profile.browser.name, profile.folder)
            cookies = await loop.run_in_executor(None, extract_cookies_via_devtools, profile)
            source = "remote debugging"
        if not cookies:
            return 0

        await self.session.ensure_initialized()
        count = await self.import_records(cookies)
        logger.info("Imported %d of %d cookies from %s / %s (%s)",
                    count, len(cookies), profile.browser.name, profile.folder, source)
        return count

    async def import_records(self, cookies: Sequence[CookieRecord]) -> int:
        """Set each cookie on the first host candidate that accepts it."""
        async with self.session.action_gate:
            try:
                await self.session.execute_cdp("Network.enable", {})
            except (BrowserControllerError, WebDriverException) as e:
                logger.debug("Network.enable failed: %s", e)

            count = 0
            for cookie in cookies:
                if not cookie.name:
                    continue
                path = normalize_cookie_path(cookie.path)
                for host in get_cookie_host_candidates(cookie.host):
                    if await self._set_via_protocol(cookie, host, path) or await self._set_via_native(cookie, host, path):
                        count += 1
                        break
            return count

    async def _set_via_protocol(self, cookie: CookieRecord, host: str, path: str) -> bool:
        payload = {
            "name": cookie.name,
            "value": cookie.value,
            "domain": host,
            "path": path,
            "secure": cookie.secure,
            "httpOnly": cookie.http_only,
            "sameSite": cookie.same_site.value,
        }
        stamp = cookie.expires_timestamp()
        if stamp is not None and stamp > 0:
            payload["expires"] = stamp
        try:
            result = await self.session.execute_cdp("Network.setCookie", payload)
        except (BrowserControllerError, WebDriverException) as e:
            logger.debug("Network.setCookie %s on %s failed: %s", cookie.name, host, e)
            return False
        return bool((result or {}).get("success"))

    async def _set_via_native(self, cookie: CookieRecord, host: str, path: str) -> bool:
        same_site = cookie.same_site
        # Browsers reject SameSite=None without Secure.
        if same_site is SameSite.NONE and not cookie.secure:
            same_site = SameSite.LAX

        native = {
            "name": cookie.name,
            "value": cookie.value,
            "domain": host,
            "path": path,
            "secure": cookie.secure,
            "httpOnly": cookie.http_only,
            "sameSite": same_site.value,
        }
        if cookie.expires is not None and cookie.expires > datetime.now(timezone.utc):
            native["expiry"] = cookie.expires_timestamp()
        try:
            await self.session.add_cookie(native)
        except (BrowserControllerError, WebDriverException) as e:
            logger.debug("Native cookie set %s on %s failed: %s", cookie.name, host, e)
            return False
        return True


__all__ = [
    "GOOGLE_AUTH_COOKIE_NAMES",
    "get_cookie_host_candidates",
    "normalize_cookie_path",
    "records_from_rows",
    "read_profile_cookies",
    "score_cookie_names",
    "session_cookie_score",
    "CookieImporter",
]
