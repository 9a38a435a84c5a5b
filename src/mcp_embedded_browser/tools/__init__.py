# mcp_embedded_browser/tools/__init__.py
"""
MCP tool implementations - async functions that return one text result.

Browser tools delegate to the action surface; cookie tools wrap the
importer and the profile discovery helpers.
"""

from .browser import (
    browser_open,
    browser_look,
    browser_find,
    browser_do,
    browser_js,
)

from .cookies import (
    cookies_list_browsers,
    cookies_list_profiles,
    cookies_import,
    cookies_session_score,
)

from .debugging import (
    browser_diagnostics,
)

__all__ = [
    # Browser
    'browser_open',
    'browser_look',
    'browser_find',
    'browser_do',
    'browser_js',
    # Cookies
    'cookies_list_browsers',
    'cookies_list_profiles',
    'cookies_import',
    'cookies_session_score',
    # Debugging
    'browser_diagnostics',
]
