"""DOM snapshot helpers.

Pages are analysed from an HTML snapshot taken after the browser annotated
layout facts that plain HTML cannot express:

- ``data-si-hidden``  element is not rendered (display/visibility/zero box)
- ``data-si-area``    anchor clickable area in px^2
- ``data-si-top``     anchor viewport top offset in px
- ``data-si-src``     resolved image source (``currentSrc``)
- ``data-si-bg``      computed background image
"""

from __future__ import annotations

import re

import soupsieve
from bs4 import BeautifulSoup, Tag

HIDDEN_ATTR = "data-si-hidden"
AREA_ATTR = "data-si-area"
TOP_ATTR = "data-si-top"
SRC_ATTR = "data-si-src"
BG_ATTR = "data-si-bg"

_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.I)
_WS = re.compile(r"\s+")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def select_safe(root: BeautifulSoup | Tag, selector: str) -> list[Tag]:
    """``root.select`` that treats malformed or unsupported selectors as no match."""
    try:
        return root.select(selector)
    except (soupsieve.SelectorSyntaxError, NotImplementedError, ValueError):
        return []


def select_one_safe(root: BeautifulSoup | Tag, selector: str) -> Tag | None:
    found = select_safe(root, selector)
    return found[0] if found else None


def count_safe(root: BeautifulSoup | Tag, selector: str) -> int:
    return len(select_safe(root, selector))


def _self_hidden(tag: Tag) -> bool:
    if tag.has_attr(HIDDEN_ATTR) or tag.has_attr("hidden"):
        return True
    if tag.name == "input" and (tag.get("type") or "").lower() == "hidden":
        return True
    return bool(_HIDDEN_STYLE.search(tag.get("style") or ""))


def is_visible(tag: Tag) -> bool:
    node: Tag | None = tag
    while node is not None and isinstance(node, Tag) and node.name not in ("[document]", "html"):
        if _self_hidden(node):
            return False
        node = node.parent
    return True


def text_of(tag: Tag) -> str:
    return _WS.sub(" ", tag.get_text(" ", strip=True)).strip()


def int_attr(tag: Tag, name: str, default: int = 0) -> int:
    raw = tag.get(name)
    try:
        return int(float(raw)) if raw is not None else default
    except (TypeError, ValueError):
        return default
