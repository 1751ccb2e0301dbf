"""Three-tier page-type classification.

Tiers are tried in order and the first one that yields a type wins:
structured data (JSON-LD), URL shape, DOM signature. Anything left over is
``other`` with confidence 0.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from ..domain.models import ClassificationMethod, PageType
from ..models.site_config import PageTypeRule
from ..observability.logger import get_logger
from ..utils.validators import escape_regex, path_segments
from .dom import count_safe
from .url_heuristics import classify_url

logger = get_logger(__name__)

JSON_LD_CONFIDENCE = 95
URL_CONFIDENCE = 70
DOM_CONFIDENCE = 55
HOME_PATTERN = r"^\/?$"
FALLBACK_PATTERN = ".*"

_JSON_LD_TYPES: tuple[tuple[PageType, frozenset[str]], ...] = (
    (PageType.PRODUCT, frozenset({"product", "offer", "individualoffer"})),
    (
        PageType.CATEGORY,
        frozenset({"itemlist", "collectionpage", "productcollection", "offeraggregate", "aggregateoffer"}),
    ),
    (PageType.CART, frozenset({"order", "cart", "checkout"})),
    (PageType.HOME, frozenset({"website", "webpage", "webapplication"})),
    (PageType.SEARCH, frozenset({"searchresultspage"})),
)

DOM_SIGNATURES: tuple[tuple[PageType, tuple[str, ...]], ...] = (
    (
        PageType.PRODUCT,
        (
            'button[class*="add-to-cart"]',
            'button[class*="addToCart"]',
            'button[name="add"]',
            '[data-testid="add-to-cart"]',
            '[itemtype*="Product"]',
        ),
    ),
    (
        PageType.CATEGORY,
        (
            '[class*="product-card"]',
            '[class*="productCard"]',
            '[class*="product-grid"]',
            '[data-testid="product-card"]',
            '[class*="product-listing"]',
        ),
    ),
    (
        PageType.CART,
        (
            '[class*="cart-item"]',
            '[class*="cartItem"]',
            '[data-testid="cart-item"]',
            'button[class*="checkout"]',
        ),
    ),
    (
        PageType.SEARCH,
        (
            '[class*="search-results"]',
            '[class*="searchResults"]',
            '[data-testid="search-results"]',
        ),
    ),
    (
        PageType.HOME,
        (
            '[class*="hero-banner"]',
            '[class*="heroBanner"]',
            '[class*="homepage"]',
            '[class*="home-page"]',
        ),
    ),
)


@dataclass(frozen=True)
class ClassificationResult:
    page_type: PageType
    method: ClassificationMethod
    rule: PageTypeRule
    json_ld_types: tuple[str, ...] = field(default=())


def build_url_pattern(url: str) -> str:
    """Escape every path segment but the last, which becomes a wildcard."""
    parts = path_segments(url)
    if not parts:
        return HOME_PATTERN
    prefix = "".join("\\/" + escape_regex(p) for p in parts[:-1])
    return f"{prefix}\\/[^/]+"


def extract_json_ld_types(soup: BeautifulSoup) -> list[str]:
    types: list[str] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.debug("json_ld_malformed", length=len(raw))
            continue

        if isinstance(data, list):
            nodes = data
        elif isinstance(data, dict) and isinstance(data.get("@graph"), list):
            nodes = data["@graph"]
        else:
            nodes = [data]

        for node in nodes:
            if not isinstance(node, dict):
                continue
            t = node.get("@type")
            if isinstance(t, str):
                types.append(t)
            elif isinstance(t, list):
                types.extend(x for x in t if isinstance(x, str))
    return types


def json_ld_page_type(types: list[str]) -> Optional[PageType]:
    normalized = {t.lower() for t in types}
    for page_type, names in _JSON_LD_TYPES:
        if normalized & names:
            return page_type
    return None


def detect_dom_type(soup: BeautifulSoup) -> Optional[tuple[PageType, str]]:
    """First page type with a marker present, plus the marker that hit."""
    for page_type, selectors in DOM_SIGNATURES:
        for sel in selectors:
            if count_safe(soup, sel) > 0:
                return page_type, sel
    return None


def _result(page_type: PageType, method: ClassificationMethod, url: str, confidence: int, **extra) -> ClassificationResult:
    json_ld_types = extra.pop("json_ld_types", ())
    rule = PageTypeRule(
        url_pattern=build_url_pattern(url),
        label=page_type.label,
        confidence=confidence,
        **extra,
    )
    return ClassificationResult(page_type=page_type, method=method, rule=rule, json_ld_types=tuple(json_ld_types))


def _json_ld_tier(soup: BeautifulSoup, url: str) -> Optional[ClassificationResult]:
    types = extract_json_ld_types(soup)
    if not types:
        return None
    page_type = json_ld_page_type(types)
    if page_type is None:
        return None
    return _result(
        page_type,
        ClassificationMethod.JSON_LD,
        url,
        JSON_LD_CONFIDENCE,
        json_ld_type=types[0],
        json_ld_types=types,
    )


def _url_tier(soup: BeautifulSoup, url: str) -> Optional[ClassificationResult]:
    page_type = classify_url(url)
    if page_type is PageType.OTHER:
        return None
    return _result(page_type, ClassificationMethod.URL, url, URL_CONFIDENCE)


def _dom_tier(soup: BeautifulSoup, url: str) -> Optional[ClassificationResult]:
    hit = detect_dom_type(soup)
    if hit is None:
        return None
    page_type, signature = hit
    return _result(page_type, ClassificationMethod.DOM, url, DOM_CONFIDENCE, dom_signature=signature)


CLASSIFIER_TIERS: tuple[Callable[[BeautifulSoup, str], Optional[ClassificationResult]], ...] = (
    _json_ld_tier,
    _url_tier,
    _dom_tier,
)


def classify_page(soup: BeautifulSoup, url: str) -> ClassificationResult:
    """Classify one page snapshot. Pure: same snapshot and URL give the same result."""
    for tier in CLASSIFIER_TIERS:
        result = tier(soup, url)
        if result is not None:
            logger.debug("page_classified", url=url, page_type=result.page_type.value, method=result.method.value)
            return result

    return ClassificationResult(
        page_type=PageType.OTHER,
        method=ClassificationMethod.FALLBACK,
        rule=PageTypeRule(url_pattern=FALLBACK_PATTERN, label=PageType.OTHER.label, confidence=0),
    )
