# mcp_embedded_browser/decorators/locking.py

"""
Agent tool calls can arrive back-to-back. Every action on the engine goes
through the session's single asyncio gate, so scripts, navigation waits and
the page-held element index are never touched by two actions at once.

The gate is not re-entrant: composite actions hold it once and call the
undecorated implementations.
"""

import inspect
import functools
from typing import Callable


__all__ = [
    "exclusive_engine_access",
]


def _session_of(args):
    owner = args[0] if args else None
    session = getattr(owner, "session", None)
    if session is None:
        raise TypeError("exclusive_engine_access expects a method on an object with a .session")
    return session


def exclusive_engine_access(_func=None):
    """Serialize the decorated coroutine method through ``self.session.action_gate``."""

    def decorator(func: Callable):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"{func.__name__} must be a coroutine function")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            async with _session_of(args).action_gate:
                return await func(*args, **kwargs)
        return wrapper

    return decorator if _func is None else decorator(_func)
