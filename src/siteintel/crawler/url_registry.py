"""Exhaustive URL registry.

Visits navigation-derived category pages, extracts one canonical product link
per listing card (following "load more" pagination), validates a sample of the
collected URLs, and induces reusable path patterns from everything collected.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from ..domain.errors import CrawlerDomainError
from ..domain.models import PageType
from ..models.site_config import CategoryUrl, NavEdge, ProductUrl, UrlRegistry, ValidatedPattern
from ..observability.logger import get_logger
from ..scraping.driver import BrowserDriver, PageSession
from ..scraping.navigation import Navigator
from ..scraping.popups import dismiss_popups
from ..scraping.scrolling import scroll_to_reveal
from ..utils.validators import canonical_path, domain_of, escape_regex, normalize_url, path_of, path_segments
from .dom import AREA_ATTR, count_safe, int_attr, parse_html, select_one_safe, select_safe, text_of
from .url_heuristics import is_sku_segment, is_sku_token

logger = get_logger(__name__)

LogFn = Callable[[str], None]

CARD_SELECTORS: tuple[str, ...] = (
    '[class*="product-card"]',
    '[class*="productCard"]',
    '[class*="product-item"]',
    '[class*="productItem"]',
    '[class*="card-item"]',
    'li[class*="product"]',
    '[class*="collection-item"]',
)
MIN_CARDS = 3

TITLE_CHILD_SELECTOR = 'h1, h2, h3, h4, [class*="title"], [class*="name"]'
CARD_NAME_SELECTOR = (
    'h2, h3, h4, [class*="title"], [class*="name"], [class*="product-name"], [class*="productName"]'
)

PAGINATION_DETECT_SELECTOR = (
    'button[class*="load-more"], button[class*="loadMore"], '
    '[class*="show-more"], [class*="pagination"] a:last-child'
)
PAGINATION_CLICK_SELECTORS: tuple[str, ...] = (
    'button[class*="load-more"]',
    'button[class*="loadMore"]',
    '[class*="show-more"] button',
    '[class*="pagination"] a:last-child',
    'button[class*="next"]',
    'a[class*="next"]',
)

ACTION_LINK_RE = re.compile(r"quickview|quick-view|wishlist|compare|share|#")
NON_PRODUCT_PATH_RE = re.compile(
    r"/(cart|account|login|checkout|blog|faq|polic(?:y|ies))(/|$)"
    r"|/bulk-order|/business/|/stores?/|store-locator|-store/",
    re.I,
)

SKU_TOKEN = "[A-Za-z0-9]{4,}"
WILDCARD_TOKEN = "[^/]+"
HOME_PATTERN = r"^\/?$"
MAX_EXAMPLES = 5
MIN_CLUSTER_SIZE = 2
MIN_CATEGORY_ALTERNATION = 3
MAX_NAME_LENGTH = 120
MIN_NAME_LENGTH = 3

# ── Product names ───────────────────────────────────────────────────────────

_BADGE_RE = re.compile(
    r"(Top Rated|Best Seller|Newly Launched|Most Popular|New Launch|Smart Workspace|"
    r"Trending|Limited Edition|Exclusive)\s*",
    re.I,
)
_RATING_BLOCK_RE = re.compile(r"[\d.]+\s*\|\s*[\d.,]+K?\s*")
_CURRENCY_RE = re.compile(r"[₹$€£]")
_CURRENCY_AMOUNT_RE = re.compile(r"[₹$€£]\s*[\d,]+(\.\d+)?")
_DISCOUNT_RE = re.compile(r"\d+%\s*off", re.I)
_PERCENT_RE = re.compile(r"\d+%")
_SIZE_VARIANT_RUN_RE = re.compile(r"(?:King|Single|Queen|Double){2,}")
_SEATER_VARIANT_RUN_RE = re.compile(r"Seater[A-Z][a-z]+(?:[A-Z][a-z]+)*")
_LEADING_PIPE_RE = re.compile(r"^\s*\|\s*")
_TRAILING_PIPE_RE = re.compile(r"\s*\|\s*$")
_LEADING_ZERO_COUNT_RE = re.compile(r"^0\s+(?=[A-Z])")
_WS_RE = re.compile(r"\s+")


def clean_product_name(raw: str) -> str:
    """Strip badge text, rating blocks, prices and glued variant labels from a card title."""
    name = _BADGE_RE.sub("", raw or "")
    name = _RATING_BLOCK_RE.sub("", name)

    # prices follow the name in card text; keep at least a few chars of name
    m = _CURRENCY_RE.search(name)
    if m and m.start() > 5:
        name = name[: m.start()]

    name = _CURRENCY_AMOUNT_RE.sub("", name)
    name = _DISCOUNT_RE.sub("", name)
    name = _PERCENT_RE.sub("", name)
    name = _SIZE_VARIANT_RUN_RE.sub("", name)
    name = _SEATER_VARIANT_RUN_RE.sub("Seater", name)
    name = _LEADING_PIPE_RE.sub("", name)
    name = _TRAILING_PIPE_RE.sub("", name)
    name = _LEADING_ZERO_COUNT_RE.sub("", name)
    name = _WS_RE.sub(" ", name).strip()
    return name[:MAX_NAME_LENGTH]


# ── Extraction ──────────────────────────────────────────────────────────────


def is_non_product_path(url: str) -> bool:
    return NON_PRODUCT_PATH_RE.search(path_of(url)) is not None


def find_cards(soup: BeautifulSoup) -> list[Tag]:
    """Cards of the first card selector that matches at least three elements."""
    for selector in CARD_SELECTORS:
        found = select_safe(soup, selector)
        if len(found) >= MIN_CARDS:
            return found
    return []


def score_link(anchor: Tag, href: str) -> float:
    segments = path_segments(href)
    score = 0.0
    if anchor.find("img") is not None:
        score += 50
    if select_one_safe(anchor, TITLE_CHILD_SELECTOR) is not None:
        score += 40
    if len(segments) > 2:
        score += 30
    if segments and is_sku_segment(segments[-1]):
        score += 100
    score += int_attr(anchor, AREA_ATTR) / 1000
    if ACTION_LINK_RE.search((anchor.get("href") or "").lower()):
        score -= 100
    return score


def _same_site_links(root: BeautifulSoup | Tag, page_url: str, domain: str) -> list[tuple[Tag, str]]:
    links: list[tuple[Tag, str]] = []
    for a in select_safe(root, "a[href]"):
        href = normalize_url(a.get("href") or "", page_url)
        if href and domain_of(href) == domain:
            links.append((a, href))
    return links


def _best_card_link(card: Tag, page_url: str, domain: str) -> str | None:
    links = _same_site_links(card, page_url, domain)
    if not links:
        return None
    # stable sort: document order breaks ties
    ranked = sorted(links, key=lambda link: -score_link(link[0], link[1]))
    return ranked[0][1]


def extract_product_urls(soup: BeautifulSoup, page_url: str, category: str) -> list[ProductUrl]:
    """Product links on one listing snapshot, one per card, deduplicated by normalised URL."""
    domain = domain_of(page_url)
    results: list[ProductUrl] = []
    seen: set[str] = set()

    for card in find_cards(soup):
        href = _best_card_link(card, page_url, domain)
        if href is None or href in seen:
            continue
        seen.add(href)
        name_el = select_one_safe(card, CARD_NAME_SELECTOR)
        name = clean_product_name(text_of(name_el) if name_el is not None else "")
        if len(name) < MIN_NAME_LENGTH or is_non_product_path(href):
            continue
        results.append(ProductUrl(name=name, url=href, category=category))

    if results:
        return results

    # no recognisable cards: fall back to product-shaped links with meaningful text
    for a, href in _same_site_links(soup, page_url, domain):
        if href in seen or len(path_segments(href)) < 2 or is_non_product_path(href):
            continue
        text = text_of(a)
        if not MIN_NAME_LENGTH <= len(text) <= MAX_NAME_LENGTH:
            continue
        name = clean_product_name(text)
        if len(name) < MIN_NAME_LENGTH:
            continue
        seen.add(href)
        results.append(ProductUrl(name=name, url=href, category=category))
    return results


def has_pagination(soup: BeautifulSoup) -> bool:
    return count_safe(soup, PAGINATION_DETECT_SELECTOR) > 0


# ── Pattern induction ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class PathCluster:
    pattern: str
    examples: tuple[str, ...]


def _anchored(tokens: Sequence[str]) -> str:
    return "^" + "".join("\\/" + t for t in tokens) + "\\/?$"


def _segment_token(values: Sequence[str]) -> str:
    if len(set(values)) == 1:
        return escape_regex(values[0])
    if all(is_sku_token(v) for v in values):
        return SKU_TOKEN
    return WILDCARD_TOKEN


def cluster_paths(paths: Iterable[str]) -> list[PathCluster]:
    """Group paths by (depth, first segment) and generalise each segment position.

    Only groups with two or more members produce a pattern. When no group
    qualifies, every multi-segment path falls back to a first-segment literal
    followed by wildcards so sparse evidence still yields something reusable.
    """
    unique = list(dict.fromkeys(canonical_path(p) for p in paths if path_segments(p)))
    groups: dict[tuple[int, str], list[str]] = {}
    for path in unique:
        segs = path_segments(path)
        groups.setdefault((len(segs), segs[0]), []).append(path)

    clusters: list[PathCluster] = []
    for (depth, _first), members in groups.items():
        if len(members) < MIN_CLUSTER_SIZE:
            continue
        split = [path_segments(m) for m in members]
        tokens = [_segment_token([segs[i] for segs in split]) for i in range(depth)]
        clusters.append(PathCluster(pattern=_anchored(tokens), examples=tuple(members[:MAX_EXAMPLES])))

    if clusters:
        return clusters

    fallback: dict[str, list[str]] = {}
    for path in unique:
        segs = path_segments(path)
        if len(segs) < 2:
            continue
        pattern = _anchored([escape_regex(segs[0])] + [WILDCARD_TOKEN] * (len(segs) - 1))
        fallback.setdefault(pattern, []).append(path)
    return [PathCluster(pattern=p, examples=tuple(ex[:MAX_EXAMPLES])) for p, ex in fallback.items()]


def derive_url_patterns(
    products: Sequence[ProductUrl],
    categories: Sequence[CategoryUrl],
    log: LogFn = lambda _msg: None,
) -> list[ValidatedPattern]:
    patterns: list[ValidatedPattern] = [ValidatedPattern(page_type=PageType.HOME, pattern=HOME_PATTERN, examples=["/"])]
    seen: set[tuple[PageType, str]] = {(PageType.HOME, HOME_PATTERN)}

    def add(page_type: PageType, cluster: PathCluster) -> None:
        key = (page_type, cluster.pattern)
        if key in seen or not cluster.examples:
            return
        seen.add(key)
        patterns.append(ValidatedPattern(page_type=page_type, pattern=cluster.pattern, examples=list(cluster.examples)))

    product_paths = [path_of(p.url) for p in products]
    if product_paths:
        product_clusters = cluster_paths(product_paths)
        for cluster in product_clusters:
            add(PageType.PRODUCT, cluster)
        log(f"derived {len(product_clusters)} product URL patterns from {len(product_paths)} URLs")

    category_paths = list(dict.fromkeys(canonical_path(path_of(c.url)) for c in categories))
    single = [p for p in category_paths if len(path_segments(p)) == 1]
    if len(single) >= MIN_CATEGORY_ALTERNATION:
        slugs = list(dict.fromkeys(escape_regex(path_segments(p)[0]) for p in single))
        add(
            PageType.CATEGORY,
            PathCluster(pattern=f"^\\/({'|'.join(slugs)})\\/?$", examples=tuple(single[:MAX_EXAMPLES])),
        )
    multi = [p for p in category_paths if len(path_segments(p)) > 1]
    for cluster in cluster_paths(multi):
        add(PageType.CATEGORY, cluster)

    return patterns


# ── Builder ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RegistryOptions:
    max_categories: int = 20
    max_products_per_category: int = 200
    max_pagination_pages: int = 5
    validation_sample: int = 20
    validation_timeout_ms: int = 10000
    scroll_max_steps: int = 20
    scroll_step_delay_ms: int = 1500
    pagination_wait_ms: int = 2000
    pagination_scroll_steps: int = 5


@dataclass
class RegistryBuildResult:
    registry: UrlRegistry
    validated_count: int = 0
    pages_visited: int = 0


@dataclass
class _Collector:
    max_per_category: int
    products: list[ProductUrl] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)

    def add(self, found: Iterable[ProductUrl], already_added: int = 0) -> int:
        added = 0
        for p in found:
            if already_added + added >= self.max_per_category:
                break
            if p.url in self.seen:
                continue
            self.seen.add(p.url)
            self.products.append(p)
            added += 1
        return added


def categories_from_nav(main_nav: Sequence[NavEdge], limit: int) -> list[CategoryUrl]:
    categories: list[CategoryUrl] = []
    seen: set[str] = set()
    for edge in main_nav:
        if edge.target_page_type is not PageType.CATEGORY or not edge.href or edge.href in seen:
            continue
        seen.add(edge.href)
        categories.append(CategoryUrl(name=edge.label, url=edge.href))
    return categories[:limit]


class UrlRegistryBuilder:
    def __init__(self, driver: BrowserDriver, navigator: Navigator, options: RegistryOptions | None = None):
        self._driver = driver
        self._navigator = navigator
        self.options = options or RegistryOptions()

    async def _snapshot_products(self, page: PageSession, category: CategoryUrl) -> tuple[BeautifulSoup, list[ProductUrl]]:
        soup = parse_html(await page.snapshot())
        return soup, extract_product_urls(soup, page.url or category.url, category.name)

    async def _paginate(self, page: PageSession, category: CategoryUrl, collector: _Collector, added: int, log: LogFn) -> int:
        opts = self.options
        for page_no in range(2, opts.max_pagination_pages + 2):
            if added >= opts.max_products_per_category:
                break
            if await page.click_first_visible(PAGINATION_CLICK_SELECTORS) is None:
                break
            await page.wait_ms(opts.pagination_wait_ms)
            await scroll_to_reveal(page, log, max_steps=opts.pagination_scroll_steps)
            _soup, found = await self._snapshot_products(page, category)
            new = collector.add(found, added)
            added += new
            log(f"    page {page_no}: {new} new products")
            if new == 0:
                break
        return added

    async def _crawl_category(self, category: CategoryUrl, collector: _Collector, log: LogFn) -> bool:
        opts = self.options
        async with self._driver.page() as page:
            if not await self._navigator.navigate_to(page, category.url, log):
                return False
            await dismiss_popups(page, log)
            await scroll_to_reveal(page, log, max_steps=opts.scroll_max_steps, step_delay_ms=opts.scroll_step_delay_ms)

            soup, found = await self._snapshot_products(page, category)
            added = collector.add(found)
            log(f"  extracted {added} new products ({len(found)} total on page)")

            if has_pagination(soup):
                log("  pagination detected, clicking through...")
                await self._paginate(page, category, collector, added, log)
            return True

    async def validate_urls(self, products: Sequence[ProductUrl], log: LogFn) -> int:
        """Navigate directly to each URL and count non-error responses."""
        if not products:
            return 0
        valid = 0
        async with self._driver.page() as page:
            for p in products:
                try:
                    status = await page.goto(p.url, timeout_ms=self.options.validation_timeout_ms)
                except CrawlerDomainError:
                    log(f"  failed to validate: {p.url}")
                    continue
                if status is not None and status < 400:
                    valid += 1
                else:
                    log(f"  invalid URL ({status}): {p.url}")
        return valid

    async def build(self, main_nav: Sequence[NavEdge], log: LogFn) -> RegistryBuildResult:
        opts = self.options
        categories = categories_from_nav(main_nav, opts.max_categories)
        log(f"found {len(categories)} category URLs from navigation (crawling top {len(categories)})")

        collector = _Collector(max_per_category=opts.max_products_per_category)
        visited = 0
        for category in categories:
            log(f"crawling category: {category.name} ({category.url})")
            try:
                if await self._crawl_category(category, collector, log):
                    visited += 1
            except CrawlerDomainError as e:
                log(f"  error crawling {category.url}: {e}")
                logger.warning("registry_category_failed", url=category.url, error=str(e))

        sample = collector.products[: opts.validation_sample]
        log(f"validating product URLs (sampling {len(sample)})...")
        validated = await self.validate_urls(sample, log)
        log(f"validation: {validated}/{len(sample)} URLs OK")

        patterns = derive_url_patterns(collector.products, categories, log)
        registry = UrlRegistry(products=collector.products, categories=categories, validated_patterns=patterns)
        log(
            f"registry complete: {len(registry.products)} products, "
            f"{len(registry.categories)} categories, {len(patterns)} patterns"
        )
        return RegistryBuildResult(registry=registry, validated_count=validated, pages_visited=visited)
