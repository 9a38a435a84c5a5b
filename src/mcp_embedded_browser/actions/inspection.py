"""Formatting and ranking of the element inventory collected from the page."""

import re
from typing import Iterable, List, Optional, Tuple

from ..constants import FIND_MAX_LIMIT, LOOK_MAX_ELEMENTS


DOWNLOAD_WORDS_RE = re.compile(r"download|save|export|attachment|file|xlsx|csv|הורד|קובץ")
DOWNLOAD_HREF_RE = re.compile(r"attid=|view=att|disp=safe|realattid=|download|export")


def element_label(item: dict) -> str:
    """Short kind label: link, button, input[type], select, textarea, or the role/tag."""
    tag = item.get("tag") or ""
    role = item.get("role") or ""
    if tag == "a":
        return "link"
    if tag == "button" or role == "button":
        return "button"
    if tag == "input":
        kind = item.get("type") or ""
        return f"input[{kind}]" if kind else "input"
    if tag in ("select", "textarea"):
        return tag
    return role or tag


def format_element(item: dict) -> str:
    text = (item.get("text") or "")[:60]
    aria = item.get("aria") or ""
    tooltip = item.get("tooltip") or ""
    parts = [f"[{item['index']}] {element_label(item)}"]
    if text:
        parts.append(f'"{text}"')
    if aria and aria != text:
        parts.append(f'aria="{aria}"')
    if tooltip and tooltip not in (text, aria):
        parts.append(f'tooltip="{tooltip}"')
    if item.get("placeholder"):
        parts.append(f'placeholder="{item["placeholder"]}"')
    if item.get("href"):
        parts.append(f"-> {item['href']}")
    if item.get("name"):
        parts.append(f'name="{item["name"]}"')
    if item.get("inDialog"):
        parts.append("[dialog]")
    return " ".join(parts)


def _matches_filter(item: dict, needle: str) -> bool:
    hay = " ".join(
        str(item.get(k) or "") for k in ("tag", "type", "text", "aria", "placeholder", "role", "name", "tooltip")
    ).lower()
    return needle in hay


def format_look(page: dict, filter_text: Optional[str] = None, limit: int = LOOK_MAX_ELEMENTS) -> str:
    """
    Render a look() snapshot.

    Args:
        page: Result of the element collection script (title, url, items, text)
        filter_text: Optional case-insensitive substring filter
        limit: Maximum number of element lines

    Returns:
        str: Header, numbered elements and a text preview
    """
    needle = (filter_text or "").strip().lower()
    items = page.get("items") or []
    if needle:
        items = [it for it in items if _matches_filter(it, needle)]
    shown = items[:max(0, limit)]

    heading = "--- Elements" + (f" (filter: {needle})" if needle else "") + " ---"
    lines = [f"Page: {page.get('title', '')}", f"URL: {page.get('url', '')}", "", heading]
    lines.extend(format_element(it) for it in shown)
    if not shown:
        lines.append("(no matching elements)")
    summary = f"({len(shown)} shown"
    if len(items) > len(shown):
        summary += f" of {len(items)}"
    lines.append(summary + ")")
    lines += ["", "--- Text Preview ---", page.get("text") or ""]
    return "\n".join(lines)


def score_element(item: dict, tokens: List[str], wants_download: bool, prefer_dialog: bool = True) -> int:
    """Relevance of one element for a tokenized query."""
    if not tokens:
        return 1
    text = (item.get("text") or "").lower()
    aria = (item.get("aria") or "").lower()
    tooltip = (item.get("tooltip") or "").lower()
    href = (item.get("href") or "").lower()
    hay = " ".join(
        str(item.get(k) or "") for k in ("text", "aria", "tooltip", "role", "name", "href", "type")
    ).lower() + " " + element_label(item)

    score = 0
    for token in tokens:
        if token in (text, aria, tooltip):
            score += 50
        if token in hay:
            score += 12
    if wants_download:
        if DOWNLOAD_WORDS_RE.search(hay):
            score += 18
        if DOWNLOAD_HREF_RE.search(href):
            score += 30
    if element_label(item) == "button":
        score += 3
    if prefer_dialog and item.get("inDialog"):
        score += 2
    return score


def rank_elements(items: Iterable[dict], query: str, limit: int, prefer_dialog: bool = True) -> List[Tuple[int, dict]]:
    """Top `limit` (score, item) pairs, best first, ties by page order."""
    limit = min(max(int(limit), 1), FIND_MAX_LIMIT)
    query_lower = (query or "").lower()
    tokens = [t for t in query_lower.split() if t]
    wants_download = bool(DOWNLOAD_WORDS_RE.search(query_lower))

    scored = [(score_element(it, tokens, wants_download, prefer_dialog), it) for it in items]
    if tokens:
        scored = [pair for pair in scored if pair[0] > 0]
    scored.sort(key=lambda pair: (-pair[0], pair[1]["index"]))
    return scored[:limit]


def format_find(page: dict, query: str, ranked: List[Tuple[int, dict]]) -> str:
    lines = [f"Page: {page.get('title', '')}", f"URL: {page.get('url', '')}", "", f'Matches for "{query}": {len(ranked)}']
    for _, it in ranked:
        text = (it.get("text") or "")[:80]
        aria = (it.get("aria") or "")[:80]
        tooltip = (it.get("tooltip") or "")[:80]
        line = f"[{it['index']}] {element_label(it)}"
        if text:
            line += f' text="{text}"'
        if aria and aria != text:
            line += f' aria="{aria}"'
        if tooltip and tooltip not in (text, aria):
            line += f' tooltip="{tooltip}"'
        if it.get("name"):
            line += f' name="{it["name"][:60]}"'
        if it.get("href"):
            line += f" href={it['href']}"
        lines.append(line)
    if not ranked:
        lines.append("No matching interactive elements found.")
    return "\n".join(lines)


def format_download_hints(items: Iterable[dict], limit: int = 6) -> str:
    """Likely download controls on the page, or '' when there are none."""
    ranked = []
    for it in items:
        href = (it.get("href") or "").lower()
        hay = " ".join(str(it.get(k) or "") for k in ("text", "aria", "tooltip", "href", "role")).lower()
        score = 0
        if DOWNLOAD_WORDS_RE.search(hay):
            score += 10
        if DOWNLOAD_HREF_RE.search(href):
            score += 25
        if it.get("tag") == "a" and href:
            score += 3
        if score > 0:
            ranked.append((score, it))
    ranked.sort(key=lambda pair: (-pair[0], pair[1]["index"]))
    top = ranked[:min(max(limit, 1), 20)]
    if not top:
        return ""

    lines = ["Download-related elements on page:"]
    for _, it in top:
        text = (it.get("text") or "")[:80]
        aria = (it.get("aria") or "")[:80]
        tooltip = (it.get("tooltip") or "")[:80]
        line = f"[{it['index']}] {it.get('tag', '')}"
        if text:
            line += f' text="{text}"'
        if aria and aria != text:
            line += f' aria="{aria}"'
        if tooltip and tooltip not in (text, aria):
            line += f' tooltip="{tooltip}"'
        if it.get("href"):
            line += f" -> {it['href']}"
        lines.append(line)
    return "\n".join(lines)


__all__ = [
    "DOWNLOAD_WORDS_RE",
    "DOWNLOAD_HREF_RE",
    "element_label",
    "format_element",
    "format_look",
    "score_element",
    "rank_elements",
    "format_find",
    "format_download_hints",
]
