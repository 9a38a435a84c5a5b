"""
Application state shared by the MCP tools.

One engine session per server process. The action surface and the cookie
importer are both bound to it, so they share its action gate.

Usage:
    from mcp_embedded_browser.context import get_context

    ctx = get_context()
    result = await ctx.surface.open("https://example.com")
"""

from dataclasses import dataclass, field
from typing import Optional

from .actions.surface import ActionSurface
from .cookies.importer import CookieImporter
from .engine.session import EngineSession


@dataclass
class AppContext:
    """
    Attributes:
        session: The embedded engine session
        surface: Agent-facing browser actions over session
        importer: Cookie importer writing into session
        config: Environment configuration dictionary
    """

    session: EngineSession
    surface: ActionSurface
    importer: CookieImporter
    config: dict = field(default_factory=dict)

    @classmethod
    def create(cls, config: Optional[dict] = None) -> "AppContext":
        session = EngineSession(config)
        return cls(
            session=session,
            surface=ActionSurface(session),
            importer=CookieImporter(session),
            config=session.config,
        )


_global_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """
    Get or create the process-wide context.

    The surface handle from configuration is registered on the session, so the
    engine starts lazily on the first action.
    """
    global _global_context

    if _global_context is None:
        from .config.environment import get_env_config

        config = get_env_config()
        _global_context = AppContext.create(config)
        _global_context.session.set_surface_handle(config.get("surface_handle"))

    return _global_context


def reset_context() -> None:
    """Drop the process-wide context. Intended for tests; call dispose() first in real use."""
    global _global_context
    _global_context = None


__all__ = [
    "AppContext",
    "get_context",
    "reset_context",
]
