from __future__ import annotations

from siteintel.crawler.content_verifier import verify_selector
from siteintel.crawler.dom import parse_html
from siteintel.domain.models import VerifyMode


def test_price_requires_digits() -> None:
    soup = parse_html('<div><span class="price">₹ 12,499</span><span class="empty-price">Call us</span></div>')
    ok = verify_selector(soup, ".price", VerifyMode.PRICE)
    assert ok.valid
    assert ok.example_value == "₹ 12,499"

    bad = verify_selector(soup, ".empty-price", VerifyMode.PRICE)
    assert not bad.valid
    assert bad.example_value == "Call us"


def test_text_needs_three_characters() -> None:
    soup = parse_html("<h1>Oak Bed</h1><h2>ok</h2>")
    assert verify_selector(soup, "h1", VerifyMode.TEXT).valid
    assert not verify_selector(soup, "h2", VerifyMode.TEXT).valid


def test_exists_skips_hidden_matches() -> None:
    soup = parse_html(
        '<div style="display: none"><button class="buy">Buy</button></div>'
        '<button class="cart" data-si-hidden="1">Cart</button>'
        '<button class="buy">Buy now</button>'
    )
    result = verify_selector(soup, ".buy", VerifyMode.EXISTS)
    assert result.valid
    assert result.example_value == "Buy now"
    assert not verify_selector(soup, ".cart", VerifyMode.EXISTS).valid


def test_image_rejects_placeholder_sources() -> None:
    soup = parse_html(
        '<div class="a"><img src="x.gif"></div>'
        '<div class="b"><img data-si-src="https://cdn.example.com/bed.jpg" src="x.gif"></div>'
        '<div class="c" style="background-image: url(https://cdn.example.com/hero.jpg)"></div>'
    )
    assert not verify_selector(soup, ".a", VerifyMode.IMAGE).valid
    assert verify_selector(soup, ".b", VerifyMode.IMAGE).example_value == "https://cdn.example.com/bed.jpg"
    assert verify_selector(soup, ".c", VerifyMode.IMAGE).valid


def test_count_needs_two_matches() -> None:
    soup = parse_html("<ul><li>Queen</li><li>King</li></ul><ol><li>Only</li></ol>")
    many = verify_selector(soup, "ul li", VerifyMode.COUNT)
    assert many.valid
    assert many.example_value == "Queen"

    one = verify_selector(soup, "ol li", VerifyMode.COUNT)
    assert not one.valid
    assert one.example_value == "1 items"


def test_malformed_selector_is_no_match() -> None:
    soup = parse_html("<p>text</p>")
    assert not verify_selector(soup, "p[[", VerifyMode.EXISTS).valid
