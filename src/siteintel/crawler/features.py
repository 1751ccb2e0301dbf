"""Feature detection.

With a vision runtime, each page type's first sample is screenshotted, the
model lists the interactive features it sees, and each feature is mapped back
onto a DOM selector in the page snapshot. Without one, the consensus selector
map is converted into a minimal feature list instead.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..domain.errors import CrawlerDomainError
from ..domain.models import FeatureType, InteractionMethod, PageType
from ..models.site_config import Feature, FeatureOption, SelectorEntry
from ..observability.logger import get_logger
from ..scraping.driver import BrowserDriver
from ..scraping.navigation import Navigator
from ..scraping.popups import dismiss_popups
from ..scraping.scrolling import scroll_to_reveal
from ..vision.parsing import Malformed, UrlInteractionAnalysis
from ..vision.runtime import VisionRuntime
from .dom import count_safe, parse_html, select_one_safe, select_safe, text_of

logger = get_logger(__name__)

LogFn = Callable[[str], None]

FEATURE_PAGE_TYPES: tuple[PageType, ...] = (PageType.HOME, PageType.CATEGORY, PageType.PRODUCT, PageType.CART)
OPTION_FEATURE_TYPES = frozenset({FeatureType.FILTER, FeatureType.SORT, FeatureType.VARIANT})
MAX_OPTION_CHILDREN = 30
MAX_OPTION_LABEL = 60
EXTRA_VERIFY_SAMPLES = 2

TEXT_SEARCH_SELECTOR = 'button, a, label, h1, h2, h3, h4, select, [role="button"]'
_OPAQUE_CLASS_RE = re.compile(r"^[a-z0-9]{6,}$")

_TYPE_CANDIDATES: dict[FeatureType, tuple[str, ...]] = {
    FeatureType.FILTER: (
        '[class*="filter"][class*="{id}"]',
        '[class*="filter-{id}"]',
        '[class*="filter-sidebar"]',
        '[class*="filterSidebar"]',
        'aside[class*="filter"]',
        '[class*="facet"]',
        '[class*="refinement"]',
    ),
    FeatureType.SORT: (
        'select[class*="sort"]',
        '[class*="sort-by"]',
        '[class*="sortBy"]',
        '[class*="sort-dropdown"]',
        'button[class*="sort"]',
        '[aria-label*="sort" i]',
    ),
    FeatureType.SEARCH: (
        'input[type="search"]',
        'input[placeholder*="search" i]',
        '[class*="search-bar"] input',
        'form[role="search"] input',
    ),
    FeatureType.VARIANT: (
        '[class*="{id}"]',
        '[class*="variant-{id}"]',
        '[class*="size-selector"]',
        '[class*="color-selector"]',
        '[class*="variant"]',
    ),
    FeatureType.CTA: (
        'button[class*="add-to-cart"]',
        'button[class*="addToCart"]',
        'button[class*="buy-now"]',
        'button[class*="buyNow"]',
        '[class*="wishlist"]',
    ),
    FeatureType.GALLERY: (
        '[class*="product-images"]',
        '[class*="image-gallery"]',
        '[class*="carousel"]',
        ".swiper-container",
        ".slick-slider",
    ),
    FeatureType.CONTENT: (
        "#{id}",
        '[data-section="{id}"]',
        '[class*="{id}"]',
    ),
    FeatureType.NAVIGATION: (
        'nav[aria-label*="breadcrumb" i]',
        '[class*="breadcrumb"]',
        '[class*="pagination"]',
        '[aria-label="pagination"]',
    ),
}

# intents that double as features when no vision model is available
ELEMENT_FEATURE_MAP: dict[str, tuple[PageType, FeatureType]] = {
    "filterSidebar": (PageType.CATEGORY, FeatureType.FILTER),
    "sortDropdown": (PageType.CATEGORY, FeatureType.SORT),
    "searchBar": (PageType.HOME, FeatureType.SEARCH),
    "addToCart": (PageType.PRODUCT, FeatureType.CTA),
    "buyNow": (PageType.PRODUCT, FeatureType.CTA),
    "sizeSelector": (PageType.PRODUCT, FeatureType.VARIANT),
    "colorSelector": (PageType.PRODUCT, FeatureType.VARIANT),
    "productImages": (PageType.PRODUCT, FeatureType.GALLERY),
    "specsSection": (PageType.PRODUCT, FeatureType.CONTENT),
    "reviewSection": (PageType.PRODUCT, FeatureType.CONTENT),
}


def _attr_safe(value: str) -> str:
    return value.replace("\\", "").replace('"', "")


def selector_candidates(feature: Feature) -> list[str]:
    kebab = _attr_safe(feature.id.replace("_", "-"))
    camel = _attr_safe(re.sub(r"_([a-z])", lambda m: m.group(1).upper(), feature.id))
    candidates = [
        f'[data-testid="{kebab}"]',
        f'[data-testid="{camel}"]',
        f'[aria-label*="{_attr_safe(feature.name)}" i]',
    ]
    candidates.extend(c.replace("{id}", kebab) for c in _TYPE_CANDIDATES.get(feature.type, ()))
    return candidates


def _selector_for_element(el: Tag) -> Optional[str]:
    if el.get("id"):
        return f"#{el['id']}"
    if el.get("data-testid"):
        return f'[data-testid="{_attr_safe(el["data-testid"])}"]'
    classes = [c for c in el.get("class") or [] if len(c) > 3 and not _OPAQUE_CLASS_RE.match(c)]
    if classes:
        return f"{el.name}.{classes[0]}"
    return None


def find_by_visible_text(soup: BeautifulSoup, text: str) -> Optional[str]:
    if not text or len(text) < 3:
        return None
    needle = text.lower()
    for el in select_safe(soup, TEXT_SEARCH_SELECTOR):
        t = text_of(el).lower()
        if t and (needle in t or t in needle):
            selector = _selector_for_element(el)
            if selector is not None:
                return selector
    return None


def find_selector_for_feature(soup: BeautifulSoup, feature: Feature) -> Optional[str]:
    for candidate in selector_candidates(feature):
        if count_safe(soup, candidate) > 0:
            return candidate
    return find_by_visible_text(soup, feature.name)


def extract_options(soup: BeautifulSoup, selector: str) -> list[FeatureOption]:
    """Options of a ``<select>``, or of a small set of button/label children."""
    container = select_one_safe(soup, selector)
    if container is None:
        return []
    if container.name == "select":
        return [
            FeatureOption(label=text_of(o), value=o.get("value") or text_of(o))
            for o in container.find_all("option")
        ]
    children = select_safe(container, 'button, input[type="checkbox"], input[type="radio"], label, li, a')
    if not 0 < len(children) < MAX_OPTION_CHILDREN:
        return []
    options = []
    for child in children:
        label = text_of(child)
        if 0 < len(label) < MAX_OPTION_LABEL:
            options.append(FeatureOption(label=label, value=child.get("value") or child.get("data-value") or label))
    return options


def map_features_to_dom(soup: BeautifulSoup, features: Sequence[Feature]) -> list[Feature]:
    mapped: list[Feature] = []
    for feature in features:
        selector = find_selector_for_feature(soup, feature)
        update: dict = {"selector": selector}
        if selector is not None and feature.type in OPTION_FEATURE_TYPES:
            options = extract_options(soup, selector)
            if options:
                update["options"] = options
        mapped.append(feature.model_copy(update=update))
    return mapped


def enrich_filters_with_url_patterns(
    features: Sequence[Feature],
    analysis: UrlInteractionAnalysis,
    log: LogFn = lambda _m: None,
) -> list[Feature]:
    """Switch filter/sort features the site drives through query parameters to ``url_param``."""
    if not analysis.uses_url_filtering:
        return list(features)

    patterns = analysis.url_patterns
    enriched: list[Feature] = []
    for feature in features:
        if feature.type not in (FeatureType.FILTER, FeatureType.SORT):
            enriched.append(feature)
            continue

        name = feature.name.lower()
        via_url = False
        if "price" in name and patterns.price_filter is not None:
            via_url = True
            log(f'  price filter: uses URL param "{patterns.price_filter.param}"')
        if feature.type is FeatureType.SORT and patterns.sort is not None:
            via_url = True
            log(f'  sort: uses URL param "{patterns.sort.param}"')
        for fp in patterns.filters:
            if fp.param and fp.param.lower() in name:
                via_url = True
                log(f'  {feature.name}: uses URL param "{fp.param}"')

        enriched.append(feature.model_copy(update={"interaction_method": InteractionMethod.URL_PARAM}) if via_url else feature)
    return enriched


def count_present_features(soup: BeautifulSoup, features: Sequence[Feature]) -> int:
    return sum(1 for f in features if f.selector and count_safe(soup, f.selector) > 0)


def _humanize(key: str) -> str:
    return re.sub(r"([A-Z])", r" \1", key).strip()


def convert_elements_to_features(elements: Mapping[str, SelectorEntry]) -> dict[PageType, list[Feature]]:
    """DOM-only feature list built from consensus selectors."""
    features: dict[PageType, list[Feature]] = {}
    for key, entry in elements.items():
        mapping = ELEMENT_FEATURE_MAP.get(key)
        if mapping is None:
            continue
        page_type, feature_type = mapping
        selector = entry.selectors[0]
        features.setdefault(page_type, []).append(
            Feature(
                id=key,
                name=_humanize(key),
                description=f"{key} element detected via DOM probing",
                type=feature_type,
                interaction_method=InteractionMethod.CLICK if selector.startswith("button") else InteractionMethod.NONE,
                selector=selector,
            )
        )
    return features


@dataclass
class FeatureExtractionResult:
    features: dict[PageType, list[Feature]] = field(default_factory=dict)
    url_interactions: dict[PageType, UrlInteractionAnalysis] = field(default_factory=dict)


class FeatureExtractor:
    def __init__(self, driver: BrowserDriver, navigator: Navigator, vision: VisionRuntime):
        self._driver = driver
        self._navigator = navigator
        self._vision = vision

    async def _verify_on(self, url: str, features: Sequence[Feature], log: LogFn) -> None:
        async with self._driver.page() as page:
            if not await self._navigator.navigate_to(page, url, log):
                return
            await dismiss_popups(page, log)
            soup = parse_html(await page.snapshot())
        with_selector = sum(1 for f in features if f.selector)
        log(f"  verified {count_present_features(soup, features)}/{with_selector} features on {url}")

    async def _extract_for(
        self, page_type: PageType, urls: Sequence[str], result: FeatureExtractionResult, log: LogFn
    ) -> list[Feature]:
        url = urls[0]
        async with self._driver.page() as page:
            if not await self._navigator.navigate_to(page, url, log):
                return []
            await dismiss_popups(page, log)
            await scroll_to_reveal(page, log, max_steps=10)

            log(f"analyzing features for {page_type.value} page...")
            detected = await self._vision.detect_features(await page.screenshot(full_page=True), page_type)
            if isinstance(detected, Malformed):
                log(f"failed to parse feature response ({detected.reason}): {detected.snippet}")
                return []
            raw = [f.to_feature(page_type, i) for i, f in enumerate(detected.value.features)]
            log(f"detected {len(raw)} features on {page_type.value} page")

            soup = parse_html(await page.snapshot())
            mapped = map_features_to_dom(soup, raw)

            if page_type is PageType.CATEGORY:
                log("analyzing URL interaction patterns...")
                interactions = await self._vision.analyze_url_interactions(
                    await page.screenshot(full_page=False), page.url or url
                )
                if isinstance(interactions, Malformed):
                    log("failed to parse URL interaction response")
                else:
                    analysis = interactions.value
                    result.url_interactions[page_type] = analysis
                    log(f"URL filtering: {analysis.uses_url_filtering}, DOM filtering: {analysis.uses_dom_filtering}")
                    mapped = enrich_filters_with_url_patterns(mapped, analysis, log)

        extra = list(urls[1 : 1 + EXTRA_VERIFY_SAMPLES])
        if extra:
            log(f"verifying features across {len(extra)} additional samples...")
            for extra_url in extra:
                await self._verify_on(extra_url, mapped, log)
        return mapped

    async def extract(self, sample_urls: Mapping[PageType, Sequence[str]], log: LogFn) -> FeatureExtractionResult:
        result = FeatureExtractionResult()
        for page_type in FEATURE_PAGE_TYPES:
            urls = sample_urls.get(page_type) or []
            if not urls:
                continue
            log(f"extracting features for {page_type.value}: {urls[0]}")
            try:
                result.features[page_type] = await self._extract_for(page_type, urls, result, log)
            except CrawlerDomainError as e:
                log(f"error extracting {page_type.value} features: {e}")
                logger.warning("feature_extraction_failed", page_type=page_type.value, error=str(e))
                result.features[page_type] = []
            log(f"{page_type.value}: {len(result.features[page_type])} features mapped")
        return result
