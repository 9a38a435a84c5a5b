"""Decorators for MCP tools and engine actions."""

from .envelope import tool_envelope, error_text
from .locking import exclusive_engine_access
from .ensure import ensure_engine_ready

__all__ = [
    "tool_envelope",
    "error_text",
    "exclusive_engine_access",
    "ensure_engine_ready",
]
