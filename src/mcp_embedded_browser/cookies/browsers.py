"""Installed Chromium-family browsers and their profiles."""

import os
import json
import glob
import platform
from typing import List, Optional

from ..browser.chrome_executable import first_existing_executable
from ..config import app_data_root
from .models import BrowserInfo, BrowserProfile

import logging
logger = logging.getLogger(__name__)


def _windows_browsers() -> List[BrowserInfo]:
    local = str(app_data_root("Windows"))
    pf = os.getenv("ProgramFiles") or r"C:\Program Files"
    pfx86 = os.getenv("ProgramFiles(x86)") or r"C:\Program Files (x86)"
    return [
        BrowserInfo(
            "Google Chrome",
            os.path.join(local, "Google", "Chrome", "User Data"),
            ("chrome",),
            (
                os.path.join(pf, "Google", "Chrome", "Application", "chrome.exe"),
                os.path.join(pfx86, "Google", "Chrome", "Application", "chrome.exe"),
                os.path.join(local, "Google", "Chrome", "Application", "chrome.exe"),
            ),
        ),
        BrowserInfo(
            "Microsoft Edge",
            os.path.join(local, "Microsoft", "Edge", "User Data"),
            ("msedge",),
            (
                os.path.join(pfx86, "Microsoft", "Edge", "Application", "msedge.exe"),
                os.path.join(pf, "Microsoft", "Edge", "Application", "msedge.exe"),
            ),
        ),
        BrowserInfo(
            "Brave",
            os.path.join(local, "BraveSoftware", "Brave-Browser", "User Data"),
            ("brave",),
            (
                os.path.join(pf, "BraveSoftware", "Brave-Browser", "Application", "brave.exe"),
                os.path.join(pfx86, "BraveSoftware", "Brave-Browser", "Application", "brave.exe"),
                os.path.join(local, "BraveSoftware", "Brave-Browser", "Application", "brave.exe"),
            ),
        ),
        BrowserInfo(
            "Vivaldi",
            os.path.join(local, "Vivaldi", "User Data"),
            ("vivaldi",),
            (
                os.path.join(local, "Vivaldi", "Application", "vivaldi.exe"),
                os.path.join(pf, "Vivaldi", "Application", "vivaldi.exe"),
            ),
        ),
        BrowserInfo(
            "Opera",
            os.path.join(local, "Opera Software", "Opera Stable"),
            ("opera",),
            (
                os.path.join(local, "Programs", "Opera", "opera.exe"),
                os.path.join(pf, "Opera", "opera.exe"),
            ),
        ),
    ]


def _macos_browsers() -> List[BrowserInfo]:
    support = str(app_data_root("Darwin"))

    def app(bundle: str, binary: str) -> str:
        return f"/Applications/{bundle}.app/Contents/MacOS/{binary}"

    return [
        BrowserInfo("Google Chrome", os.path.join(support, "Google", "Chrome"),
                    ("Google Chrome",), (app("Google Chrome", "Google Chrome"),)),
        BrowserInfo("Microsoft Edge", os.path.join(support, "Microsoft Edge"),
                    ("Microsoft Edge",), (app("Microsoft Edge", "Microsoft Edge"),)),
        BrowserInfo("Brave", os.path.join(support, "BraveSoftware", "Brave-Browser"),
                    ("Brave Browser",), (app("Brave Browser", "Brave Browser"),)),
        BrowserInfo("Vivaldi", os.path.join(support, "Vivaldi"),
                    ("Vivaldi",), (app("Vivaldi", "Vivaldi"),)),
        BrowserInfo("Opera", os.path.join(support, "com.operasoftware.Opera"),
                    ("Opera",), (app("Opera", "Opera"),)),
    ]


def _linux_browsers() -> List[BrowserInfo]:
    config = str(app_data_root("Linux"))
    return [
        BrowserInfo("Google Chrome", os.path.join(config, "google-chrome"),
                    ("chrome",), ("google-chrome", "google-chrome-stable")),
        BrowserInfo("Microsoft Edge", os.path.join(config, "microsoft-edge"),
                    ("msedge",), ("microsoft-edge", "microsoft-edge-stable")),
        BrowserInfo("Brave", os.path.join(config, "BraveSoftware", "Brave-Browser"),
                    ("brave",), ("brave-browser", "brave")),
        BrowserInfo("Vivaldi", os.path.join(config, "vivaldi"),
                    ("vivaldi-bin",), ("vivaldi", "vivaldi-stable")),
        BrowserInfo("Opera", os.path.join(config, "opera"),
                    ("opera",), ("opera",)),
    ]


def known_browsers(system: Optional[str] = None) -> List[BrowserInfo]:
    """Browser families this importer knows about on the given (or current) platform."""
    system = system or platform.system()
    if system == "Windows":
        return _windows_browsers()
    if system == "Darwin":
        return _macos_browsers()
    return _linux_browsers()


def list_installed_browsers(system: Optional[str] = None) -> List[BrowserInfo]:
    """Known browsers whose profile tree exists on this machine."""
    return [b for b in known_browsers(system) if os.path.isdir(b.user_data_path)]


def find_browser(name: str, system: Optional[str] = None) -> Optional[BrowserInfo]:
    """Look up an installed browser by display name, case-insensitively."""
    wanted = (name or "").strip().lower()
    for browser in list_installed_browsers(system):
        if browser.name.lower() == wanted:
            return browser
    return None


def find_cookie_file(profile_dir: str) -> Optional[str]:
    """Cookie database of a profile: Network/Cookies on current builds, Cookies on older ones."""
    for candidate in (os.path.join(profile_dir, "Network", "Cookies"), os.path.join(profile_dir, "Cookies")):
        if os.path.isfile(candidate):
            return candidate
    return None


def read_profile_name(profile_dir: str) -> Optional[str]:
    """Display name from the profile's Preferences file, or None if unreadable."""
    prefs = os.path.join(profile_dir, "Preferences")
    if not os.path.isfile(prefs):
        return None
    try:
        with open(prefs, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.debug("Unreadable Preferences in %s: %s", profile_dir, e)
        return None
    name = (data.get("profile") or {}).get("name") if isinstance(data, dict) else None
    return name if isinstance(name, str) and name else None


def list_profiles(browser: BrowserInfo) -> List[BrowserProfile]:
    """
    Profiles of a browser that have a cookie database.

    Returns:
        List[BrowserProfile]: "Default" first, then "Profile N" folders
    """
    root = browser.user_data_path
    if not os.path.isdir(root):
        return []

    folders = [os.path.join(root, "Default")]
    try:
        folders += sorted(glob.glob(os.path.join(root, "Profile *")))
    except OSError as e:
        logger.warning("Could not list profiles under %s: %s", root, e)

    profiles = []
    for folder in folders:
        if not os.path.isdir(folder) or find_cookie_file(folder) is None:
            continue
        folder_name = os.path.basename(folder)
        profiles.append(BrowserProfile(read_profile_name(folder) or folder_name, folder_name, browser))
    return profiles


def find_profile(browser: BrowserInfo, profile: Optional[str] = None) -> Optional[BrowserProfile]:
    """Match a profile by display name or folder name; the first profile when none is given."""
    profiles = list_profiles(browser)
    if not profiles:
        return None
    wanted = (profile or "").strip().lower()
    if not wanted:
        return profiles[0]
    for p in profiles:
        if wanted in (p.name.lower(), p.folder.lower()):
            return p
    return None


def find_browser_executable(browser: BrowserInfo) -> Optional[str]:
    return first_existing_executable(browser.executable_candidates)


__all__ = [
    "known_browsers",
    "list_installed_browsers",
    "find_browser",
    "find_cookie_file",
    "read_profile_name",
    "list_profiles",
    "find_profile",
    "find_browser_executable",
]
