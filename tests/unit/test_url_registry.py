from __future__ import annotations

import asyncio
import re

from fakes import CATEGORIES, ORIGIN, FakeDriver, fast_navigator, shop_site

from siteintel.crawler.dom import parse_html
from siteintel.crawler.url_registry import (
    UrlRegistryBuilder,
    _Collector,
    clean_product_name,
    cluster_paths,
    derive_url_patterns,
    extract_product_urls,
)
from siteintel.domain.models import PageType
from siteintel.models.site_config import CategoryUrl, NavEdge, ProductUrl, UrlRegistry


def test_clusters_same_prefix_paths_with_sku_tail() -> None:
    clusters = cluster_paths(["/mattress/a/SKU1", "/mattress/b/SKU2", "/mattress/c/SKU3", "/bed/d/SKU4"])

    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.pattern == "^\\/mattress\\/[^/]+\\/[A-Za-z0-9]{4,}\\/?$"
    assert cluster.examples == ("/mattress/a/SKU1", "/mattress/b/SKU2", "/mattress/c/SKU3")
    assert not re.search(cluster.pattern, "/bed/d/SKU4")


def test_sparse_paths_fall_back_to_prefix_wildcards() -> None:
    clusters = cluster_paths(["/sofa/x/SF1", "/bed/y", "/chair"])

    patterns = {c.pattern for c in clusters}
    assert patterns == {"^\\/sofa\\/[^/]+\\/[^/]+\\/?$", "^\\/bed\\/[^/]+\\/?$"}


def test_derived_patterns_start_with_home_and_compile() -> None:
    products = [
        ProductUrl(name=f"Sofa {i}", url=f"{ORIGIN}/sofas/item-{i}/SF10{i}0", category="Sofas") for i in range(3)
    ]
    categories = [CategoryUrl(name=c, url=f"{ORIGIN}/{c}") for c in ("sofas", "beds", "chairs")]

    patterns = derive_url_patterns(products, categories)

    assert patterns[0].page_type is PageType.HOME
    assert patterns[0].matches("/")
    category = next(p for p in patterns if p.page_type is PageType.CATEGORY)
    assert category.pattern == "^\\/(sofas|beds|chairs)\\/?$"
    product = next(p for p in patterns if p.page_type is PageType.PRODUCT)
    assert product.matches("/sofas/item-9/SF1090")

    # the artifact survives a serialisation round trip unchanged
    registry = UrlRegistry(products=products, categories=categories, validated_patterns=patterns)
    assert UrlRegistry.model_validate(registry.to_json_dict()) == registry


def test_clean_product_name_strips_card_noise() -> None:
    assert clean_product_name("Best Seller Oak Bed 4.5 | 1.2K ₹12,999 20% off") == "Oak Bed"
    assert clean_product_name("  Walnut   Desk ") == "Walnut Desk"
    assert clean_product_name("Sofa 3 SeaterFabricLeather") == "Sofa 3 Seater"
    assert len(clean_product_name("x" * 300)) == 120


def test_one_canonical_link_per_card() -> None:
    card = (
        '<div class="product-card">'
        '<a href="/wishlist/add?id={n}">Save</a>'
        '<a href="/beds/oak-bed/OB12{n}4?ref=grid"><img src="https://cdn.example.com/{n}.jpg"><h3>Oak Bed {n}</h3></a>'
        "</div>"
    )
    html = "<main>" + card.format(n=1) + card.format(n=1) + card.format(n=2) + "</main>"

    found = extract_product_urls(parse_html(html), f"{ORIGIN}/beds", "Beds")

    assert [p.url for p in found] == [f"{ORIGIN}/beds/oak-bed/OB1214", f"{ORIGIN}/beds/oak-bed/OB1224"]
    assert found[0].name == "Oak Bed 1"
    assert found[0].category == "Beds"


def test_link_fallback_without_cards() -> None:
    html = (
        '<a href="/desks/standing-desk-pro">Standing Desk Pro</a>'
        '<a href="/cart/add">Add</a>'
        '<a href="https://elsewhere.example.org/desks/x">Elsewhere</a>'
    )
    found = extract_product_urls(parse_html(html), f"{ORIGIN}/desks", "Desks")
    assert [p.url for p in found] == [f"{ORIGIN}/desks/standing-desk-pro"]


def test_builder_crawls_categories_and_validates() -> None:
    driver = FakeDriver(shop_site())
    nav = [
        NavEdge(label=slug.capitalize(), href=f"{ORIGIN}/{slug}", target_page_type=PageType.CATEGORY)
        for slug in CATEGORIES
    ]
    nav.append(NavEdge(label="Model", href=f"{ORIGIN}/beds/beds-model-1/AB1123X", target_page_type=PageType.PRODUCT))
    lines: list[str] = []

    result = asyncio.run(UrlRegistryBuilder(driver, fast_navigator()).build(nav, lines.append))

    registry = result.registry
    assert len(registry.categories) == len(CATEGORIES)
    assert len(registry.products) == 3 * len(CATEGORIES)
    assert len({p.url for p in registry.products}) == len(registry.products)
    assert result.validated_count == len(registry.products)
    assert result.pages_visited == len(CATEGORIES)
    assert driver.pages_opened == driver.pages_closed
    kinds = {p.page_type for p in registry.validated_patterns}
    assert kinds == {PageType.HOME, PageType.PRODUCT, PageType.CATEGORY}


def test_builder_skips_unreachable_category() -> None:
    driver = FakeDriver(shop_site(), failing=[f"{ORIGIN}/sofas"])
    nav = [
        NavEdge(label=slug.capitalize(), href=f"{ORIGIN}/{slug}", target_page_type=PageType.CATEGORY)
        for slug in ("sofas", "beds")
    ]

    result = asyncio.run(UrlRegistryBuilder(driver, fast_navigator()).build(nav, lambda _m: None))

    assert result.pages_visited == 1
    assert {p.category for p in result.registry.products} == {"Beds"}


def test_every_derived_pattern_matches_its_own_examples() -> None:
    products = (
        [ProductUrl(name=f"Bed {i}", url=f"{ORIGIN}/beds/oak-bed-{i}/OB12{i}4", category="Beds") for i in range(4)]
        + [ProductUrl(name=f"Lamp {i}", url=f"{ORIGIN}/p/LMP-{i}.html?ref=grid", category="Lamps") for i in range(3)]
        + [ProductUrl(name="Desk", url=f"{ORIGIN}/desks/standing-desk-pro/", category="Desks")]
    )
    categories = [CategoryUrl(name=c, url=f"{ORIGIN}/{c}/") for c in ("beds", "lamps", "desks", "sale+outlet")] + [
        CategoryUrl(name=f"Living {c}", url=f"{ORIGIN}/living/{c}") for c in ("sofas", "tables", "tv-units")
    ]

    patterns = derive_url_patterns(products, categories)

    assert {p.page_type for p in patterns} == {PageType.HOME, PageType.PRODUCT, PageType.CATEGORY}
    for pattern in patterns:
        for example in pattern.examples:
            assert pattern.matches(example), (pattern.pattern, example)


def test_collecting_the_same_listing_twice_adds_nothing_new() -> None:
    listing = [
        ProductUrl(name=f"Chair {i}", url=f"{ORIGIN}/chairs/chair-{i}/CH10{i}0", category="Chairs") for i in range(4)
    ]
    collector = _Collector(max_per_category=10)

    first = collector.add(listing)
    second = collector.add(listing, already_added=first)

    assert (first, second) == (4, 0)
    assert [p.url for p in collector.products] == [p.url for p in listing]
    assert len({p.url for p in collector.products}) == len(collector.products)


def test_collector_stops_at_the_category_cap() -> None:
    listing = [ProductUrl(name=f"Rug {i}", url=f"{ORIGIN}/rugs/rug-{i}/RG10{i}0", category="Rugs") for i in range(5)]
    collector = _Collector(max_per_category=3)

    assert collector.add(listing[:2]) == 2
    assert collector.add(listing, already_added=2) == 1
    assert len(collector.products) == 3
