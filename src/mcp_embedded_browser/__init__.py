"""
Embedded browser controller for LLM agents, plus a cross-browser cookie importer.

One long-lived Chromium engine is driven through a small action vocabulary
(open, look, find, do, js). Every action returns a short plain-text result
and all actions are serialized through one gate per session.

Cookies can be brought over from the user's installed browsers so signed-in
sessions carry into the engine without logging in again.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
