"""
Global constants and configuration defaults.
No dependencies - safe to import from anywhere.

Every value can be overridden through the environment so the server can be
tuned without code changes.
"""

import os


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


# ============================================================================
# Navigation
# ============================================================================

NAVIGATION_TIMEOUT_SECS = _env_float("MCP_NAVIGATION_TIMEOUT_SECS", 18.0)
"""Timeout for a regular full-page navigation."""

SPA_NAVIGATION_TIMEOUT_SECS = _env_float("MCP_SPA_NAVIGATION_TIMEOUT_SECS", 8.0)
"""Timeout for URLs recognized as single-page-application routes."""

NAVIGATION_SETTLE_SECS = 0.2
"""Pause after a navigation signal before reading the title."""

SPA_HOST_HINTS = ("mail.google.com", "contacts.google.com")
"""Hosts whose routes change without a full page load."""

GO_BACK_TIMEOUT_SECS = 10.0


# ============================================================================
# Page inspection
# ============================================================================

LOOK_MAX_ELEMENTS = int(os.getenv("MCP_LOOK_MAX_ELEMENTS", "80"))
"""Maximum number of indexed elements returned by look()."""

LOOK_TEXT_PREVIEW_CHARS = int(os.getenv("MCP_LOOK_TEXT_PREVIEW_CHARS", "3000"))

FIND_DEFAULT_LIMIT = 12
FIND_MAX_LIMIT = 50

SETTLE_MAX_WAIT_MS = 4000
SETTLE_POLL_MS = 300
DO_SETTLE_MAX_WAIT_MS = 2000
DO_SETTLE_POLL_MS = 250
SETTLE_MIN_TEXT_LENGTH = 200
"""Pages with less visible text than this are never considered settled early."""

WAIT_FOR_DEFAULT_TIMEOUT_MS = 10000
WAIT_FOR_POLL_MS = 250

EVALUATE_SETTLE_SECS = 0.3
DEFAULT_SCROLL_PIXELS = 500


# ============================================================================
# Downloads
# ============================================================================

DOWNLOAD_HISTORY_SIZE = 10
"""Capacity of the recent-download ring."""

DOWNLOAD_WAIT_DEFAULT_MS = 5000
DOWNLOAD_POLL_MS = 250
DOWNLOAD_RECENT_WINDOW_SECS = 60.0


# ============================================================================
# Cookie import
# ============================================================================

COOKIE_COPY_RETRY_WAIT_SECS = 0.5
"""Pause between killing background browser processes and retrying the copy."""

GRACEFUL_CLOSE_WAIT_SECS = 1.5

EXTRACTION_PORT_RANGE = (10000, 60000)
EXTRACTION_TARGET_POLLS = 50
EXTRACTION_TARGET_POLL_SECS = 0.2
EXTRACTION_FORCE_PAGE_AT_POLL = 10
"""After this many polls (~2 s) without a page target, open a blank page."""

EXTRACTION_STARTUP_TIMEOUT_SECS = _env_float("MCP_EXTRACTION_STARTUP_TIMEOUT_SECS", 20.0)
EXTRACTION_MESSAGE_TIMEOUT_SECS = _env_float("MCP_EXTRACTION_MESSAGE_TIMEOUT_SECS", 10.0)

AUTH_COOKIE_WEIGHT = int(os.getenv("MCP_AUTH_COOKIE_WEIGHT", "10"))
PARTIAL_AUTH_COOKIE_WEIGHT = int(os.getenv("MCP_PARTIAL_AUTH_COOKIE_WEIGHT", "2"))


# ============================================================================
# Engine startup
# ============================================================================

DEVTOOLS_READY_WAIT_SECS = _env_float("MCP_DEVTOOLS_MAX_WAIT_SECS", 10.0)
DEVTOOLS_CALL_TIMEOUT_SECS = 10.0


__all__ = [
    "NAVIGATION_TIMEOUT_SECS",
    "SPA_NAVIGATION_TIMEOUT_SECS",
    "NAVIGATION_SETTLE_SECS",
    "SPA_HOST_HINTS",
    "GO_BACK_TIMEOUT_SECS",
    "LOOK_MAX_ELEMENTS",
    "LOOK_TEXT_PREVIEW_CHARS",
    "FIND_DEFAULT_LIMIT",
    "FIND_MAX_LIMIT",
    "SETTLE_MAX_WAIT_MS",
    "SETTLE_POLL_MS",
    "DO_SETTLE_MAX_WAIT_MS",
    "DO_SETTLE_POLL_MS",
    "SETTLE_MIN_TEXT_LENGTH",
    "WAIT_FOR_DEFAULT_TIMEOUT_MS",
    "WAIT_FOR_POLL_MS",
    "EVALUATE_SETTLE_SECS",
    "DEFAULT_SCROLL_PIXELS",
    "DOWNLOAD_HISTORY_SIZE",
    "DOWNLOAD_WAIT_DEFAULT_MS",
    "DOWNLOAD_POLL_MS",
    "DOWNLOAD_RECENT_WINDOW_SECS",
    "COOKIE_COPY_RETRY_WAIT_SECS",
    "GRACEFUL_CLOSE_WAIT_SECS",
    "EXTRACTION_PORT_RANGE",
    "EXTRACTION_TARGET_POLLS",
    "EXTRACTION_TARGET_POLL_SECS",
    "EXTRACTION_FORCE_PAGE_AT_POLL",
    "EXTRACTION_STARTUP_TIMEOUT_SECS",
    "EXTRACTION_MESSAGE_TIMEOUT_SECS",
    "AUTH_COOKIE_WEIGHT",
    "PARTIAL_AUTH_COOKIE_WEIGHT",
    "DEVTOOLS_READY_WAIT_SECS",
    "DEVTOOLS_CALL_TIMEOUT_SECS",
]
