"""Target addressing for click/type/select."""

from dataclasses import dataclass
from typing import Optional

from ..constants import SPA_HOST_HINTS


_SELECTOR_CHARS = set("#.[]>:*+~")
_SCHEMELESS_PREFIXES = ("about:", "data:", "javascript:", "file:", "chrome:", "blob:", "view-source:")


@dataclass(frozen=True)
class Target:
    """A parsed element target: mode is 'index', 'selector' or 'text'."""

    mode: str
    value: str

    @property
    def index(self) -> Optional[int]:
        return int(self.value) if self.mode == "index" else None


def looks_like_css_selector(value: str) -> bool:
    """True when value contains characters that only make sense in a selector."""
    return any(ch in _SELECTOR_CHARS for ch in value)


def parse_target(raw: Optional[str]) -> Optional[Target]:
    """
    Classify a target string. Returns None for a blank target.

    Order: element number (optionally written '#3'), structural selector, free text.
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None
    digits = value.lstrip("#")
    if digits.isdigit():
        return Target("index", str(max(1, int(digits))))
    if looks_like_css_selector(value):
        return Target("selector", value)
    return Target("text", value)


def is_likely_spa_route(url: str) -> bool:
    """URLs whose navigation usually changes only the route, never firing a full load."""
    lowered = (url or "").lower()
    return "#" in lowered or any(hint in lowered for hint in SPA_HOST_HINTS)


def normalize_url(url: str) -> str:
    """Add https:// to bare host names; leave anything with a scheme alone."""
    url = (url or "").strip()
    if not url or "://" in url or url.lower().startswith(_SCHEMELESS_PREFIXES):
        return url
    return "https://" + url


__all__ = [
    "Target",
    "looks_like_css_selector",
    "parse_target",
    "is_likely_spa_route",
    "normalize_url",
]
