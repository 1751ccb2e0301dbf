"""Content verification for located elements.

A selector that matches is not enough: an empty price container or a hidden
placeholder must not win consensus. Each mode decides whether the match holds
meaningful content and returns a short example value for diagnostics.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from bs4 import BeautifulSoup, Tag

from ..domain.models import VerifyMode, VerifyResult
from .dom import BG_ATTR, SRC_ATTR, is_visible, select_safe, text_of

PRICE_RE = re.compile(r"[$€£₹¥₩]?\s*\d[\d,.\s]*\d|\d[\d,.\s]*[$€£₹¥₩]")
_CSS_URL_RE = re.compile(r"background(?:-image)?\s*:[^;]*url\(([^)]+)\)", re.I)

MIN_TEXT_LENGTH = 3
MIN_COUNT = 2
MIN_IMAGE_SRC_LENGTH = 10


def _verify_exists(matches: list[Tag]) -> VerifyResult:
    for el in matches:
        if is_visible(el):
            return VerifyResult(valid=True, example_value=(text_of(el)[:100] or el.name))
    return VerifyResult(valid=False)


def _verify_text(matches: list[Tag]) -> VerifyResult:
    text = text_of(matches[0])
    if len(text) >= MIN_TEXT_LENGTH:
        return VerifyResult(valid=True, example_value=text[:100])
    return VerifyResult(valid=False, example_value=text[:100] or None)


def _verify_price(matches: list[Tag]) -> VerifyResult:
    text = next((t for t in (text_of(el) for el in matches) if t), "")
    if text and PRICE_RE.search(text):
        return VerifyResult(valid=True, example_value=text[:50])
    return VerifyResult(valid=False, example_value=text[:50] or None)


def _image_source(el: Tag) -> str:
    img = el if el.name == "img" else el.find("img")
    if not isinstance(img, Tag):
        return ""
    for attr in (SRC_ATTR, "src", "data-src", "data-lazy-src"):
        value = (img.get(attr) or "").strip()
        if value:
            return value
    srcset = (img.get("srcset") or "").strip()
    return srcset.split(",")[0].split(" ")[0] if srcset else ""


def _background_image(el: Tag) -> str:
    bg = (el.get(BG_ATTR) or "").strip()
    if bg:
        return bg
    m = _CSS_URL_RE.search(el.get("style") or "")
    return m.group(0) if m else ""


def _is_trivial_source(src: str) -> bool:
    return len(src) <= MIN_IMAGE_SRC_LENGTH or src.startswith("data:image/gif")


def _verify_image(matches: list[Tag]) -> VerifyResult:
    el = matches[0]
    src = _image_source(el)
    if src and not _is_trivial_source(src):
        return VerifyResult(valid=True, example_value=src[:80])
    bg = _background_image(el)
    if bg and bg.lower() != "none":
        return VerifyResult(valid=True, example_value=bg[:80])
    return VerifyResult(valid=False)


def _verify_count(matches: list[Tag]) -> VerifyResult:
    n = len(matches)
    if n < MIN_COUNT:
        return VerifyResult(valid=False, example_value=f"{n} items")
    first = text_of(matches[0])[:80]
    return VerifyResult(valid=True, example_value=first or f"{n} items")


VERIFIERS: dict[VerifyMode, Callable[[list[Tag]], VerifyResult]] = {
    VerifyMode.EXISTS: _verify_exists,
    VerifyMode.TEXT: _verify_text,
    VerifyMode.PRICE: _verify_price,
    VerifyMode.IMAGE: _verify_image,
    VerifyMode.COUNT: _verify_count,
}


def verify_elements(matches: list[Tag], mode: VerifyMode) -> VerifyResult:
    if not matches:
        return VerifyResult(valid=False)
    return VERIFIERS[VerifyMode(mode)](matches)


def verify_selector(root: BeautifulSoup | Tag, selector: str, mode: VerifyMode) -> VerifyResult:
    """Locate ``selector`` in the snapshot and verify its content for ``mode``."""
    return verify_elements(select_safe(root, selector), mode)
