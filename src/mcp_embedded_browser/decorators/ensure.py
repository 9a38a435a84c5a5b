# mcp_embedded_browser/decorators/ensure.py
import inspect
import functools


__all__ = [
    "ensure_engine_ready",
]


def ensure_engine_ready(_func=None):
    """
    Lazily initialize the engine before the decorated method runs.

    Initialization failures surface as EngineUnavailableError, which the tool
    envelope turns into a plain error string.
    """
    def decorator(fn):
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"{fn.__name__} must be a coroutine function")

        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            session = getattr(args[0], "session", None) if args else None
            if session is None:
                raise TypeError("ensure_engine_ready expects a method on an object with a .session")
            await session.ensure_initialized()
            return await fn(*args, **kwargs)
        return wrapper

    return decorator if _func is None else decorator(_func)
