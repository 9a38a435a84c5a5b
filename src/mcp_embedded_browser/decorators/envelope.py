# mcp_embedded_browser/decorators/envelope.py

import os
import json
import inspect
import functools
import traceback
from typing import Any, Callable

from ..errors import BrowserControllerError

import logging
logger = logging.getLogger(__name__)


__all__ = [
    "tool_envelope",
    "error_text",
]


def error_text(err: Exception, include_tb: bool = False) -> str:
    """
    Plain-text error for the calling agent.

    Typed errors from this package already carry a descriptive message;
    anything else is prefixed with its exception type.
    """
    if isinstance(err, BrowserControllerError):
        text = f"Error: {err}"
    else:
        text = f"Error: {err.__class__.__name__}: {err}"
    if include_tb:
        text += "\n" + traceback.format_exc()
    return text


def tool_envelope(func: Callable):
    """
    Decorator for actions and MCP tool functions:
      - Works with both async and sync callables.
      - On success: ensures the return value is a string (json.dumps for non-strings).
      - On error: returns a plain 'Error: ...' string. Nothing is raised to the caller.
    Environment:
      - Set MCP_TOOL_ERRORS_TRACEBACK=1 to append the traceback to error strings.
    """
    include_tb = os.getenv("MCP_TOOL_ERRORS_TRACEBACK", "0") in ("1", "true", "True")

    def _normalize(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, bytes):
            return value.decode("utf-8", "replace")
        try:
            return json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(value)

    def _on_error(err: Exception) -> str:
        if isinstance(err, BrowserControllerError):
            logger.warning("%s failed: %s", func.__name__, err)
        else:
            logger.exception("%s failed", func.__name__)
        return error_text(err, include_tb)

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def _async_wrapper(*args, **kwargs):
            try:
                return _normalize(await func(*args, **kwargs))
            except Exception as e:
                return _on_error(e)
        return _async_wrapper

    @functools.wraps(func)
    def _sync_wrapper(*args, **kwargs):
        try:
            return _normalize(func(*args, **kwargs))
        except Exception as e:
            return _on_error(e)
    return _sync_wrapper
