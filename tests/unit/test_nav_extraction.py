from __future__ import annotations

from fakes import ORIGIN, home_html

from siteintel.crawler.dom import parse_html
from siteintel.crawler.navigation import (
    build_nav_graph,
    classify_nav_target,
    extract_main_nav,
    needs_home_supplement,
    supplement_nav_with_home_links,
)
from siteintel.domain.models import PageType

SPARSE_HOME = f"""<html><body>
<header><nav><a href="/sofas">Sofas</a><a href="/sofas/3-seater/SF1001">Aria Sofa</a></nav></header>
<section class="tiles">
  <a href="/beds">Beds</a>
  <a href="/wardrobes">Wardrobes</a>
  <a href="/store-locator">Find a store</a>
  <a href="/logo.svg">Logo</a>
  <a href="https://elsewhere.example.org/chairs">Chairs</a>
</section>
</body></html>"""


def test_extracts_catalogue_links_and_skips_utility() -> None:
    lines: list[str] = []

    nav = extract_main_nav(parse_html(home_html()), f"{ORIGIN}/", "shop.example.com", lines.append)

    assert [e.label for e in nav] == ["Mattresses", "Beds", "Sofas", "Pillows", "Chairs"]
    assert all(e.target_page_type is PageType.CATEGORY for e in nav)
    assert nav[0].href == f"{ORIGIN}/mattresses"
    assert nav[0].selector == 'a[href*="/mattresses"]'
    assert lines and lines[0].startswith("nav extraction:")


def test_shallow_links_sort_first() -> None:
    nav = extract_main_nav(parse_html(SPARSE_HOME), f"{ORIGIN}/", "shop.example.com")
    assert [e.target_page_type for e in nav] == [PageType.CATEGORY, PageType.PRODUCT]


def test_nav_target_shapes() -> None:
    assert classify_nav_target(f"{ORIGIN}/stores/delhi") is PageType.OTHER
    assert classify_nav_target(f"{ORIGIN}/beds/AB1234") is PageType.PRODUCT
    assert classify_nav_target(f"{ORIGIN}/beds/king") is PageType.CATEGORY


def test_sparse_nav_is_topped_up_from_home_links() -> None:
    soup = parse_html(SPARSE_HOME)
    nav = extract_main_nav(soup, f"{ORIGIN}/", "shop.example.com")
    assert needs_home_supplement(nav)

    supplemented = supplement_nav_with_home_links(nav, soup, f"{ORIGIN}/", "shop.example.com")

    added = [e.href for e in supplemented[len(nav):]]
    assert added == [f"{ORIGIN}/beds", f"{ORIGIN}/wardrobes"]


def test_nav_graph_links_categories_from_every_page() -> None:
    nav = extract_main_nav(parse_html(SPARSE_HOME), f"{ORIGIN}/", "shop.example.com")

    graph = build_nav_graph(nav)

    assert graph[PageType.HOME] == nav
    assert [e.label for e in graph[PageType.PRODUCT]] == ["Sofas"]
    assert graph[PageType.CATEGORY] == graph[PageType.PRODUCT]
