"""Cookie import tool implementations."""

import asyncio
from typing import Optional, Tuple

from ..context import get_context
from ..cookies.browsers import find_browser, find_profile, list_installed_browsers, list_profiles
from ..cookies.importer import session_cookie_score
from ..cookies.models import BrowserInfo, BrowserProfile

import logging
logger = logging.getLogger(__name__)


def _resolve(browser: str, profile: Optional[str]) -> Tuple[Optional[BrowserProfile], Optional[str]]:
    """(profile, None) on success, (None, message) when browser or profile is unknown."""
    info = find_browser(browser)
    if info is None:
        installed = ", ".join(b.name for b in list_installed_browsers()) or "none"
        return None, f"Error: browser '{browser}' is not installed. Installed: {installed}"
    found = find_profile(info, profile)
    if found is None:
        available = ", ".join(f"{p.name} ({p.folder})" for p in list_profiles(info)) or "none"
        return None, f"Error: profile '{profile}' not found in {info.name}. Profiles: {available}"
    return found, None


def _browser_line(info: BrowserInfo) -> str:
    return f"{info.name}: {info.user_data_path}"


async def cookies_list_browsers() -> str:
    browsers = list_installed_browsers()
    if not browsers:
        return "No supported browsers found."
    return "Installed browsers:\n" + "\n".join(_browser_line(b) for b in browsers)


async def cookies_list_profiles(browser: str) -> str:
    info = find_browser(browser)
    if info is None:
        return f"Error: browser '{browser}' is not installed."
    profiles = list_profiles(info)
    if not profiles:
        return f"No profiles with cookies found for {info.name}."
    lines = [f"Profiles for {info.name}:"]
    lines.extend(f"- {p.name} (folder: {p.folder})" for p in profiles)
    return "\n".join(lines)


async def cookies_import(browser: str, profile: Optional[str] = None) -> str:
    found, err = _resolve(browser, profile)
    if err:
        return err
    count = await get_context().importer.import_cookies(found)
    if count == 0:
        return f"No cookies imported from {found.browser.name} / {found.name}."
    return f"Imported {count} cookies from {found.browser.name} / {found.name}."


async def cookies_session_score(browser: str, profile: Optional[str] = None) -> str:
    found, err = _resolve(browser, profile)
    if err:
        return err
    loop = asyncio.get_running_loop()
    score = await loop.run_in_executor(None, session_cookie_score, found)
    return f"Session cookie score for {found.browser.name} / {found.name}: {score}"


__all__ = [
    "cookies_list_browsers",
    "cookies_list_profiles",
    "cookies_import",
    "cookies_session_score",
]
