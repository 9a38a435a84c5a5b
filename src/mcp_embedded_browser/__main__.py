#region Overview
"""
## What this server does

One embedded Chromium engine per server process, driven by an agent through
a handful of tools. Every tool returns one plain-text string. Errors come back
as strings starting with "Error", never as exceptions, so the agent can adjust
its targeting and retry.

## Working with pages

1. `browser_open(url)` navigates and returns a numbered snapshot of the visible
   interactive elements plus a text preview.
2. `browser_do("click", "3")` acts on element [3] of that snapshot. Targets may
   also be CSS selectors or visible text.
3. State-changing actions return a fresh snapshot, or report a download or a
   followed pop-up instead.

Element numbers are valid until the page changes. Every snapshot re-numbers.

## Signed-in sessions

`cookies_list_browsers` / `cookies_list_profiles` show local browser profiles.
`cookies_session_score` hints at which profile is signed in to Google.
`cookies_import` copies a profile's cookies into the engine. When the stored
values cannot be decrypted from outside, the browser is briefly started
headless to list them, which closes any running window of that browser.
"""
#endregion

#region Imports
import sys
import logging
from typing import Optional

from dotenv import load_dotenv, find_dotenv
from mcp.server.fastmcp import FastMCP
#endregion

#region Configuration
load_dotenv(find_dotenv(filename=".env", usecwd=True), override=True)

from mcp_embedded_browser.config import log_level
from mcp_embedded_browser.decorators import tool_envelope
from mcp_embedded_browser.tools import browser, cookies, debugging
#endregion

#region Logging
# stdout carries the MCP stdio transport.
logging.basicConfig(
    level=log_level(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)
#endregion

#region FastMCP Initialization
mcp = FastMCP("mcp_embedded_browser")
#endregion

#region Tools -- Browser
@mcp.tool()
@tool_envelope
async def browser_open(url: str) -> str:
    """
    Navigate to a URL, wait for the content to settle, and return a snapshot.

    The snapshot lists visible interactive elements as `[n] kind "text" ...`
    lines followed by a text preview. Use the numbers with browser_do.
    If the URL is a file download, the download status is returned instead.

    Args:
        url: Address to open; "https://" is added when no scheme is given.
    """
    return await browser.browser_open(url)


@mcp.tool()
@tool_envelope
async def browser_look(filter: Optional[str] = None, dialog_only: bool = False) -> str:
    """
    Return a numbered snapshot of the current page (up to 80 elements).

    Args:
        filter: Optional case-insensitive text; only matching elements are listed.
        dialog_only: List only elements inside an open modal dialog.
    """
    return await browser.browser_look(filter, dialog_only)


@mcp.tool()
@tool_envelope
async def browser_find(query: str, limit: int = 12, prefer_dialog: bool = True) -> str:
    """
    Rank the page's interactive elements against a query.

    Words like "download" or "export" boost likely download links.

    Args:
        query: Words describing the element, e.g. "export csv".
        limit: Number of results, 1-50.
        prefer_dialog: Boost elements inside an open dialog.
    """
    return await browser.browser_find(query, limit, prefer_dialog)


@mcp.tool()
@tool_envelope
async def browser_do(action: str, target: Optional[str] = None, value: Optional[str] = None) -> str:
    """
    Perform one page action.

    Actions:
        click    target = element number, CSS selector or visible text
        type     target = element number or selector, value = text
        press    target = key name (default Enter), value = optional selector
        select   target = <select> number or selector, value = option value or text
        scroll   target = "up" or "down", value = pixels (default 500)
        back     go back in history
        wait     target = CSS selector (default body), value = timeout ms
        download target = optional file-name pattern such as "*.csv", value = timeout ms
        open / look / find / js are shortcuts for the other tools.

    click, type, press, select and back return a fresh snapshot afterwards.
    """
    return await browser.browser_do(action, target, value)


@mcp.tool()
@tool_envelope
async def browser_js(script: str) -> str:
    """
    Evaluate JavaScript in the page and return the JSON-serialized result.

    Promises are awaited. A download started by the script is reported.
    """
    return await browser.browser_js(script)
#endregion

#region Tools -- Debugging
@mcp.tool()
@tool_envelope
async def browser_diagnostics() -> str:
    """Engine, driver and DevTools state plus recent downloads, as JSON."""
    return await debugging.browser_diagnostics()
#endregion

#region Tools -- Cookies
@mcp.tool()
@tool_envelope
async def cookies_list_browsers() -> str:
    """List installed Chromium-family browsers whose profiles can be imported."""
    return await cookies.cookies_list_browsers()


@mcp.tool()
@tool_envelope
async def cookies_list_profiles(browser: str) -> str:
    """
    List profiles of an installed browser.

    Args:
        browser: Browser name as shown by cookies_list_browsers, e.g. "Google Chrome".
    """
    return await cookies.cookies_list_profiles(browser)


@mcp.tool()
@tool_envelope
async def cookies_import(browser: str, profile: Optional[str] = None) -> str:
    """
    Import a browser profile's cookies into the embedded engine.

    May briefly restart the browser headless, closing its open windows.

    Args:
        browser: Browser name, e.g. "Microsoft Edge".
        profile: Profile display name or folder; the first profile when omitted.
    """
    return await cookies.cookies_import(browser, profile)


@mcp.tool()
@tool_envelope
async def cookies_session_score(browser: str, profile: Optional[str] = None) -> str:
    """
    Score how likely a profile is signed in to Google, without importing.

    Higher is better; compare profiles and import the highest.
    """
    return await cookies.cookies_session_score(browser, profile)
#endregion


if __name__ == "__main__":
    mcp.run()
