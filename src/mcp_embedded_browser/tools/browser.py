"""Browser tool implementations. Each returns the action surface's text result."""

from typing import Optional

from ..context import get_context


async def browser_open(url: str) -> str:
    return await get_context().surface.open(url)


async def browser_look(filter_text: Optional[str] = None, dialog_only: bool = False) -> str:
    return await get_context().surface.look(filter_text, dialog_only)


async def browser_find(query: str, limit: int = 12, prefer_dialog: bool = True) -> str:
    return await get_context().surface.find(query, limit, prefer_dialog)


async def browser_do(action: str, target: Optional[str] = None, value: Optional[str] = None) -> str:
    return await get_context().surface.do(action, target, value)


async def browser_js(script: str) -> str:
    return await get_context().surface.evaluate(script)


__all__ = [
    "browser_open",
    "browser_look",
    "browser_find",
    "browser_do",
    "browser_js",
]
