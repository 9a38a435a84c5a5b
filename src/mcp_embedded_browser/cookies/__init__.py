"""Cross-browser cookie import into the embedded engine."""

from .models import BrowserInfo, BrowserProfile, CookieRecord, SameSite
from .browsers import find_browser, find_profile, list_installed_browsers, list_profiles
from .importer import CookieImporter, get_cookie_host_candidates, session_cookie_score

__all__ = [
    "BrowserInfo",
    "BrowserProfile",
    "CookieRecord",
    "SameSite",
    "find_browser",
    "find_profile",
    "list_installed_browsers",
    "list_profiles",
    "CookieImporter",
    "get_cookie_host_candidates",
    "session_cookie_score",
]
