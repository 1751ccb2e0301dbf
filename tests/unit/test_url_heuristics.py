from __future__ import annotations

from siteintel.crawler.url_heuristics import classify_url, is_product_slug, is_sku_segment, is_sku_token
from siteintel.domain.models import PageType


def test_root_is_home() -> None:
    assert classify_url("https://shop.example.com/") is PageType.HOME
    assert classify_url("https://shop.example.com") is PageType.HOME


def test_cart_and_search_shapes() -> None:
    assert classify_url("https://shop.example.com/cart") is PageType.CART
    assert classify_url("https://shop.example.com/basket/") is PageType.CART
    assert classify_url("https://shop.example.com/search?q=sofa") is PageType.SEARCH
    assert classify_url("https://shop.example.com/catalog?query=bed") is PageType.SEARCH


def test_utility_pages_are_other() -> None:
    for path in ("/account/orders", "/pages/privacy-policy", "/blogs/news", "/login"):
        assert classify_url(f"https://shop.example.com{path}") is PageType.OTHER, path


def test_depth_and_final_segment_decide_product() -> None:
    assert classify_url("https://shop.example.com/beds/storage/queen") is PageType.PRODUCT
    assert classify_url("https://shop.example.com/beds/AB1234XYZ") is PageType.PRODUCT
    assert classify_url("https://shop.example.com/products/walnut-king-size-bed") is PageType.PRODUCT
    assert classify_url("https://shop.example.com/beds/queen") is PageType.CATEGORY


def test_single_segment_is_always_category() -> None:
    assert classify_url("https://shop.example.com/walnut-king-size-bed-with-storage") is PageType.CATEGORY
    assert classify_url("https://shop.example.com/SKU1234") is PageType.CATEGORY


def test_sku_and_slug_shapes() -> None:
    assert is_sku_segment("bed-AB1234")
    assert not is_sku_segment("bedroom-sets")
    assert is_sku_token("AB1234XYZ")
    assert not is_sku_token("bed-AB1234")
    assert is_product_slug("walnut-king-size-bed")
    assert not is_product_slug("beds")


def test_utility_keywords_only_match_whole_segments() -> None:
    for path in ("/pressure-cookers", "/contact-lenses", "/about-time-watches", "/termsite/x"):
        assert classify_url(f"https://shop.example.com{path}") is PageType.CATEGORY, path
    assert classify_url("https://shop.example.com/kitchen/pressure-cookers/PC1234") is PageType.PRODUCT

    for path in ("/press", "/contact-us", "/about-us", "/terms-and-conditions", "/account/order-history", "/faq.html"):
        assert classify_url(f"https://shop.example.com{path}") is PageType.OTHER, path
