"""
Typed errors raised inside the package.

None of these cross the tool boundary: the action surface and the tool
envelope turn them into plain descriptive strings for the calling agent.
"""


class BrowserControllerError(Exception):
    """Base class for all errors raised by this package."""


class EngineUnavailableError(BrowserControllerError):
    """The embedded engine could not be initialized or is not attached."""


class ElementNotFoundError(BrowserControllerError):
    """No page element matched the requested target."""


class ScriptExecutionError(BrowserControllerError):
    """A page script threw or returned an unusable result."""


class DevToolsError(BrowserControllerError):
    """The remote-debugging channel failed or returned an error response."""


class CookieStoreError(BrowserControllerError):
    """A browser cookie database could not be located, copied or read."""


__all__ = [
    "BrowserControllerError",
    "EngineUnavailableError",
    "ElementNotFoundError",
    "ScriptExecutionError",
    "DevToolsError",
    "CookieStoreError",
]
