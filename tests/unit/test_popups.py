from __future__ import annotations

import asyncio

from fakes import FakePage

from siteintel.scraping.popups import dismiss_popups
from siteintel.scraping.scrolling import scroll_to_reveal

URL = "https://shop.example.com/"


def _loaded(html: str, **kwargs) -> FakePage:
    page = FakePage({URL: html}, **kwargs)
    asyncio.run(page.goto(URL, timeout_ms=1000))
    return page


def test_clicks_every_visible_accept_control() -> None:
    page = _loaded("<html></html>", clickable=["#onetrust-accept-btn-handler", 'button[aria-label="Close"]'])
    lines: list[str] = []

    dismissed = asyncio.run(dismiss_popups(page, lines.append))

    assert dismissed == 2
    assert page.clicked == ["#onetrust-accept-btn-handler", 'button[aria-label="Close"]']
    assert lines[-1] == "total overlays dismissed: 2"


def test_escape_closes_remaining_overlay() -> None:
    page = _loaded('<html><body><div class="newsletter-popup">Join us</div></body></html>')

    assert asyncio.run(dismiss_popups(page, lambda _m: None)) == 1
    assert page.escapes == 1


def test_hidden_overlay_is_ignored() -> None:
    page = _loaded('<html><body><div class="newsletter-popup" style="display:none">Join us</div></body></html>')
    lines: list[str] = []

    assert asyncio.run(dismiss_popups(page, lines.append)) == 0
    assert page.escapes == 0
    assert lines == ["no overlays detected"]


def test_scroll_stops_at_bottom() -> None:
    page = _loaded("<html></html>")
    lines: list[str] = []

    steps = asyncio.run(scroll_to_reveal(page, lines.append, max_steps=5))

    assert steps == 1
    assert any("reached bottom at step 1" in line for line in lines)
