"""Pure helpers that turn crawl evidence into SiteConfig sections."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from bs4 import BeautifulSoup

from ..crawler.consensus import calculate_coverage
from ..crawler.page_classifier import HOME_PATTERN
from ..domain.models import PageType, VisualClassification
from ..models.site_config import (
    ListingSchema,
    NavEdge,
    PageTypeRule,
    ProductSchema,
    ProductUrl,
    SelectorEntry,
    SiteConfig,
    SiteMeta,
    UrlRegistry,
)

REGISTRY_RULE_CONFIDENCE = 95
VISUAL_BOOST_THRESHOLD = 80
MAX_RULE_PATTERNS = 8
MAX_PRIMARY_CATEGORIES = 12
MAX_PICK_ROUNDS = 100

GENERIC_TOKENS = ("[^/]+", "[A-Za-z0-9]{4,}")
STORE_PATTERN_RE = re.compile(r"store|dealer|franchise|bulk-order|business", re.I)
STORE_CATEGORY_RE = re.compile(r"store|dealer|bulk", re.I)

# checked in order; the first symbol found in a price example wins
CURRENCY_SYMBOLS: tuple[tuple[str, str], ...] = (
    ("₹", "INR"),
    ("Rs.", "INR"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
    ("A$", "AUD"),
    ("C$", "CAD"),
    ("$", "USD"),
)
PRICE_INTENTS = ("price", "productCardPrice", "originalPrice", "cartTotal")

PLATFORM_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("shopify", ("cdn.shopify.com", "shopify.theme", "myshopify.com")),
    ("magento", ("mage/cookies", "magento", "data-mage-init")),
    ("woocommerce", ("woocommerce", "wp-content/plugins/woo")),
    ("prestashop", ("prestashop",)),
    ("bigcommerce", ("bigcommerce", "cdn11.bigcommerce.com")),
    ("salesforce", ("demandware", "dwanalytics")),
)


def pick_diverse_products(products: Sequence[ProductUrl], n: int) -> list[str]:
    """Up to ``n`` product URLs, round-robin across categories."""
    if len(products) <= n:
        return [p.url for p in products]

    groups: dict[str, list[str]] = {}
    for p in products:
        groups.setdefault(p.category or "_uncategorized", []).append(p.url)

    queues = list(groups.values())
    picked: list[str] = []
    i = 0
    while len(picked) < n and i < MAX_PICK_ROUNDS:
        queue = queues[i % len(queues)]
        if queue:
            picked.append(queue.pop(0))
        i += 1
        if not any(queues):
            break
    return picked


def registry_category_samples(registry: UrlRegistry, n: int = 3) -> list[str]:
    return [c.url for c in registry.categories if not STORE_CATEGORY_RE.search(c.url)][:n]


def dedupe_patterns(patterns: Sequence[str]) -> list[str]:
    """Drop store/business patterns unless nothing else is left, then dedupe in order."""
    kept = [p for p in patterns if not STORE_PATTERN_RE.search(p)]
    return list(dict.fromkeys(kept or patterns))


def combine_patterns(patterns: Sequence[str]) -> str:
    generic = [p for p in patterns if any(t in p for t in GENERIC_TOKENS)]
    selected = dedupe_patterns(generic or list(patterns[:MAX_RULE_PATTERNS]))
    if len(selected) == 1:
        return selected[0]
    return "(" + "|".join(selected) + ")"


def merge_page_type_rules(
    dom_rules: Mapping[PageType, PageTypeRule],
    registry: UrlRegistry,
    visual: Iterable[VisualClassification] = (),
) -> dict[PageType, PageTypeRule]:
    """Registry-derived rules replace DOM-derived ones; home always has a rule."""
    merged = dict(dom_rules)

    by_type: dict[PageType, list[str]] = {}
    for vp in registry.validated_patterns:
        by_type.setdefault(vp.page_type, []).append(vp.pattern)

    for page_type, patterns in by_type.items():
        previous = merged.get(page_type)
        merged[page_type] = PageTypeRule(
            url_pattern=combine_patterns(patterns),
            json_ld_type=previous.json_ld_type if previous else None,
            dom_signature=previous.dom_signature if previous else None,
            label=page_type.label,
            confidence=REGISTRY_RULE_CONFIDENCE,
        )

    if PageType.HOME not in merged:
        merged[PageType.HOME] = PageTypeRule(
            url_pattern=HOME_PATTERN, label=PageType.HOME.label, confidence=REGISTRY_RULE_CONFIDENCE
        )

    for vc in visual:
        rule = merged.get(vc.page_type)
        if rule is not None and vc.confidence > VISUAL_BOOST_THRESHOLD and vc.confidence > rule.confidence:
            merged[vc.page_type] = rule.model_copy(update={"confidence": min(100, vc.confidence)})
    return merged


def _first(elements: Mapping[str, SelectorEntry], key: str) -> Optional[str]:
    entry = elements.get(key)
    return entry.selectors[0] if entry is not None else None


def build_product_schema(elements: Mapping[str, SelectorEntry]) -> ProductSchema:
    return ProductSchema(
        name=_first(elements, "productTitle"),
        price=_first(elements, "price"),
        original_price=_first(elements, "originalPrice"),
        rating=_first(elements, "rating"),
        review_count=_first(elements, "reviewCount"),
        highlights=_first(elements, "highlights"),
        images=_first(elements, "productImages"),
        add_to_cart=_first(elements, "addToCart"),
    )


def build_listing_schema(elements: Mapping[str, SelectorEntry]) -> ListingSchema:
    return ListingSchema(
        card=_first(elements, "productCards"),
        name=_first(elements, "productCardName"),
        price=_first(elements, "productCardPrice"),
        rating=_first(elements, "productCardRating"),
        link=_first(elements, "productCards"),
        filter_sidebar=_first(elements, "filterSidebar"),
    )


def derive_brand_name(domain: str) -> str:
    first = domain.split(".")[0]
    return first[:1].upper() + first[1:]


def detect_currency(elements: Mapping[str, SelectorEntry], default: str) -> str:
    for key in PRICE_INTENTS:
        entry = elements.get(key)
        if entry is None or not entry.example_value:
            continue
        for symbol, code in CURRENCY_SYMBOLS:
            if symbol in entry.example_value:
                return code
    return default


def detect_locale(home: Optional[BeautifulSoup], default: str) -> str:
    if home is None or home.html is None:
        return default
    lang = (home.html.get("lang") or "").strip()
    if not lang:
        return default
    parts = lang.replace("_", "-").split("-")
    if len(parts) >= 2:
        return f"{parts[0].lower()}-{parts[1].upper()}"
    return parts[0].lower()


def detect_platform(home_html: str) -> str:
    text = home_html.lower()
    for platform, markers in PLATFORM_MARKERS:
        if any(m in text for m in markers):
            return platform
    return "custom"


def build_meta(
    domain: str,
    main_nav: Sequence[NavEdge],
    elements: Mapping[str, SelectorEntry],
    home: Optional[BeautifulSoup],
    home_html: str,
    *,
    default_currency: str,
    default_locale: str,
) -> SiteMeta:
    return SiteMeta(
        brand_name=derive_brand_name(domain),
        currency=detect_currency(elements, default_currency),
        locale=detect_locale(home, default_locale),
        primary_categories=[e.label for e in main_nav if e.target_page_type is PageType.CATEGORY][:MAX_PRIMARY_CATEGORIES],
        platform=detect_platform(home_html),
    )


def merge_overlay(config: SiteConfig, overlay: Mapping[str, SelectorEntry], *, coverage_threshold: int) -> SiteConfig:
    """Hand-verified entries replace crawled ones; derived sections are rebuilt."""
    if not overlay:
        return config
    elements = {**config.elements, **overlay}
    return config.model_copy(
        update={
            "elements": elements,
            "coverage": calculate_coverage(elements, threshold=coverage_threshold),
            "product_schema": build_product_schema(elements),
            "listing_schema": build_listing_schema(elements),
        }
    )
