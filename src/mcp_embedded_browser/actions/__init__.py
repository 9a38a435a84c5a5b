"""Agent-facing page actions over the engine session."""

from .surface import ActionSurface
from .targeting import Target, parse_target

__all__ = [
    "ActionSurface",
    "Target",
    "parse_target",
]
