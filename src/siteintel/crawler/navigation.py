"""Main navigation extraction and the derived navigation graph."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from bs4 import BeautifulSoup, Tag

from ..domain.models import PageType
from ..models.site_config import NavEdge
from ..scraping.driver import PageSession
from ..utils.validators import domain_of, normalize_url, path_of, path_segments
from .dom import TOP_ATTR, int_attr, select_safe, text_of
from .url_heuristics import is_sku_segment

NAV_ANCHOR_SELECTORS: tuple[str, ...] = (
    "header a[href]",
    "nav a[href]",
    '[role="navigation"] a[href]',
    '[class*="nav"] a[href]',
    '[class*="Nav"] a[href]',
    '[class*="menu"] a[href]',
    '[class*="Menu"] a[href]',
    '[class*="mega"] a[href]',
    '[class*="dropdown"] a[href]',
    '[class*="submenu"] a[href]',
    '[class*="sub-menu"] a[href]',
    '[class*="header"] a[href]',
    '[class*="Header"] a[href]',
    '[class*="topbar"] a[href]',
    '[class*="top-bar"] a[href]',
)
TOP_BAND_PX = 150
MAX_NAV_EDGES = 50
MIN_CATEGORY_EDGES = 5

TOP_LEVEL_ITEMS_SELECTOR = (
    "header nav > ul > li, header nav > div > a, "
    '[class*="nav"] > ul > li, [class*="menu"] > ul > li, '
    '[role="navigation"] > ul > li'
)
HAMBURGER_SELECTORS: tuple[str, ...] = (
    'button[aria-label*="menu" i]',
    'button[class*="hamburger"]',
    'button[class*="menu-toggle"]',
    'button[class*="nav-toggle"]',
    '[class*="burger"]',
    '[class*="mobile-menu"] button',
)
MAX_HOVER_ITEMS = 10

SKIP_NAV_RE = re.compile(
    r"/(login|register|account|signup|sign-up|cart|checkout|blog|faq|contact|about|policy|terms|"
    r"privacy|careers|press|investor|media|customer-service|help|support|order|track|wishlist|"
    r"gift|gift-card)",
    re.I,
)
STORE_RE = re.compile(
    r"/(?:store|stores|furniture-store|dealer|franchise|become-dealer|bulk-orders?|business|referral|refer)\b",
    re.I,
)
HOME_LINK_SKIP_RE = re.compile(
    r"/(login|register|account|signup|cart|checkout|blog|faq|contact|about|policy|terms|privacy|"
    r"careers|press|investor|media|help|support|order|track|wishlist|gift|store|stores|"
    r"furniture-store|dealer|franchise|bulk-order|business|referral)",
    re.I,
)
ASSET_RE = re.compile(r"\.(js|css|png|jpg|svg|gif|ico|json|xml)$", re.I)
LONG_SLUG_RE = re.compile(r"^[a-z0-9-]{20,}$")


def _nav_anchors(soup: BeautifulSoup) -> list[Tag]:
    anchors: dict[int, Tag] = {}
    for selector in NAV_ANCHOR_SELECTORS:
        for a in select_safe(soup, selector):
            anchors.setdefault(id(a), a)
    for a in select_safe(soup, "a[href]"):
        if a.has_attr(TOP_ATTR) and 0 <= int_attr(a, TOP_ATTR, -1) < TOP_BAND_PX:
            anchors.setdefault(id(a), a)
    return list(anchors.values())


def classify_nav_target(href: str) -> PageType:
    path = path_of(href).lower()
    parts = path_segments(href)
    if STORE_RE.search(path):
        return PageType.OTHER
    if len(parts) >= 3:
        return PageType.PRODUCT
    if len(parts) == 2 and (is_sku_segment(parts[-1]) or LONG_SLUG_RE.match(parts[-1])):
        return PageType.PRODUCT
    return PageType.CATEGORY


def _edge_selector(href: str) -> str:
    return f'a[href*="{path_of(href)}"]'


def extract_main_nav(soup: BeautifulSoup, page_url: str, domain: str, log: Callable[[str], None] = lambda _m: None) -> list[NavEdge]:
    """Header/menu links that look like catalogue entry points, shallowest first."""
    labels: dict[str, str] = {}
    for a in _nav_anchors(soup):
        href = normalize_url(a.get("href") or "", page_url)
        if not href or domain_of(href) != domain:
            continue
        label = text_of(a)
        if href in labels:
            if label and len(label) < len(labels[href]):
                labels[href] = label
            continue
        if not 2 <= len(label) <= 80:
            continue
        path = path_of(href)
        if SKIP_NAV_RE.search(path.lower()) or path in ("", "/"):
            continue
        labels[href] = label

    ordered = sorted(labels.items(), key=lambda item: len(path_segments(item[0])))[:MAX_NAV_EDGES]
    edges = [
        NavEdge(label=label, href=href, selector=_edge_selector(href), target_page_type=classify_nav_target(href))
        for href, label in ordered
    ]
    useful = [e for e in edges if e.target_page_type is not PageType.OTHER]
    log(f"nav extraction: {len(edges)} raw -> {len(useful)} useful ({len(edges) - len(useful)} skipped as utility)")
    return useful


def home_category_links(soup: BeautifulSoup, page_url: str, domain: str) -> list[NavEdge]:
    """Single-segment internal links anywhere on the home page."""
    edges: list[NavEdge] = []
    seen: set[str] = set()
    for a in select_safe(soup, "a[href]"):
        href = normalize_url(a.get("href") or "", page_url)
        if not href or domain_of(href) != domain or href in seen:
            continue
        path = path_of(href)
        segments = path_segments(href)
        if len(segments) != 1 or HOME_LINK_SKIP_RE.search(path):
            continue
        slug = segments[0]
        if len(slug) < 3 or ASSET_RE.search(slug):
            continue
        label = text_of(a)
        if not 2 <= len(label) <= 60:
            continue
        seen.add(href)
        edges.append(NavEdge(label=label, href=href, selector=_edge_selector(href), target_page_type=PageType.CATEGORY))
    return edges


def needs_home_supplement(main_nav: Sequence[NavEdge]) -> bool:
    return sum(1 for e in main_nav if e.target_page_type is PageType.CATEGORY) < MIN_CATEGORY_EDGES


def supplement_nav_with_home_links(
    main_nav: Sequence[NavEdge],
    home_soup: BeautifulSoup,
    page_url: str,
    domain: str,
    log: Callable[[str], None] = lambda _m: None,
) -> list[NavEdge]:
    """Top up a sparse navigation with category-shaped links from the home page."""
    if not needs_home_supplement(main_nav):
        return list(main_nav)

    existing = {e.href for e in main_nav}
    extra = [e for e in home_category_links(home_soup, page_url, domain) if e.href not in existing]
    if extra:
        log(f"adding {len(extra)} new category links: {', '.join(e.label for e in extra)}")
    return [*main_nav, *extra]


def build_nav_graph(main_nav: Sequence[NavEdge]) -> dict[PageType, list[NavEdge]]:
    categories = [e for e in main_nav if e.target_page_type is PageType.CATEGORY]
    return {
        PageType.HOME: list(main_nav),
        PageType.PRODUCT: categories,
        PageType.CATEGORY: list(categories),
    }


async def reveal_hidden_menus(page: PageSession, log: Callable[[str], None]) -> None:
    """Hover top-level items so mega-menus render, or open the hamburger menu."""
    hovered = await page.hover_each(TOP_LEVEL_ITEMS_SELECTOR, limit=MAX_HOVER_ITEMS, pause_ms=500)
    if hovered:
        log(f"hovered over {hovered} nav items to reveal dropdowns")
        return
    clicked = await page.click_first_visible(HAMBURGER_SELECTORS)
    if clicked is not None:
        log("clicked hamburger menu to reveal navigation...")
        await page.wait_ms(2000)
