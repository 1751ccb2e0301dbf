"""Vertical-agnostic URL shape heuristics.

Shared by the classifier's URL tier, sitemap clustering and the registry
builder so that every phase buckets a given path the same way.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from ..domain.models import PageType

CART_PATH_RE = re.compile(r"/(cart|basket|bag|trolley)(/|$)")
SEARCH_PATH_RE = re.compile(r"/(search|find|results?)(/|$)")
SEARCH_QUERY_KEYS = frozenset({"q", "query", "search"})
# whole segments only: /press matches, /pressure-cookers does not
UTILITY_PATH_RE = re.compile(
    r"/(login|signin|signup|register|account|profile|orders?|wishlist|checkout|payment|"
    r"thank-you|confirmation|404|about|blogs?|faqs?|policy|policies|terms|privacy|contact|"
    r"careers|press|investors?)"
    r"(?:[-_](?:us|page|policy|policies|history|conditions|and-conditions|of-use|of-service|notice|centre|center))?"
    r"(?=/|$|[?#.])",
    re.I,
)
STORE_LOCATOR_RE = re.compile(r"store[-_]?locator|find[-_]?a[-_]?store|stores?(/|$)", re.I)

# 4+ alphanumerics containing both a letter and a digit, e.g. AB1234XYZ
SKU_RUN_RE = re.compile(r"(?=[A-Za-z0-9]*\d)(?=[A-Za-z0-9]*[A-Za-z])[A-Za-z0-9]{4,}")
SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]{14,}$")


def is_sku_segment(segment: str) -> bool:
    return any(SKU_RUN_RE.fullmatch(run) for run in re.findall(r"[A-Za-z0-9]{4,}", segment))


def is_sku_token(segment: str) -> bool:
    """Whole segment is one SKU-shaped token (used when inducing patterns)."""
    return SKU_RUN_RE.fullmatch(segment) is not None


def is_product_slug(segment: str) -> bool:
    return SLUG_RE.match(segment) is not None


def is_utility_path(path: str) -> bool:
    return UTILITY_PATH_RE.search(path) is not None


def classify_url(url: str) -> PageType:
    """Bucket a URL by path shape alone; unparseable and utility URLs are ``other``."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return PageType.OTHER

    path = (parsed.path or "/").lower()
    raw_parts = [p for p in (parsed.path or "").split("/") if p]

    if CART_PATH_RE.search(path):
        return PageType.CART
    if SEARCH_PATH_RE.search(path) or SEARCH_QUERY_KEYS & set(parse_qs(parsed.query)):
        return PageType.SEARCH
    if not raw_parts:
        return PageType.HOME
    if is_utility_path(path):
        return PageType.OTHER

    if len(raw_parts) >= 3:
        return PageType.PRODUCT
    # single-segment paths are always listings, however slug-like
    last = raw_parts[-1]
    if len(raw_parts) == 2 and (is_sku_segment(last) or is_product_slug(last)):
        return PageType.PRODUCT
    return PageType.CATEGORY
