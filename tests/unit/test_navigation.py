from __future__ import annotations

import asyncio

from fakes import FakePage, fast_navigator

from siteintel.scraping.navigation import NavigationOptions, Navigator
from siteintel.utils.retry import RetryPolicy

URL = "https://shop.example.com/sofas"

CHALLENGE = "<html><head><title>Just a moment...</title></head><body></body></html>"


class _Robots:
    def __init__(self, allowed: bool):
        self.allowed = allowed
        self.checked: list[str] = []

    async def is_allowed(self, url: str, *, user_agent: str | None = None) -> bool:
        self.checked.append(url)
        return self.allowed


def test_navigates_to_reachable_page() -> None:
    page = FakePage({URL: "<html><head><title>Sofas</title></head></html>"})
    lines: list[str] = []

    assert asyncio.run(fast_navigator().navigate_to(page, URL, lines.append))
    assert page.url == URL
    assert lines == []


def test_retries_then_reports_unreachable() -> None:
    page = FakePage({}, failing=[URL])
    lines: list[str] = []

    assert not asyncio.run(fast_navigator(max_attempts=3).navigate_to(page, URL, lines.append))
    assert page.visited == [URL, URL, URL]
    assert any(line.startswith("navigation attempt 1 failed") for line in lines)
    assert lines[-1].startswith(f"navigate failed: {URL}")


def test_waits_out_anti_bot_interstitial() -> None:
    page = FakePage({URL: CHALLENGE})
    lines: list[str] = []

    assert asyncio.run(fast_navigator().navigate_to(page, URL, lines.append))
    assert any("anti-bot challenge" in line for line in lines)


def test_unclearing_challenge_is_retried_and_skipped() -> None:
    page = FakePage({URL: CHALLENGE}, challenge_clears=False)

    assert not asyncio.run(fast_navigator(max_attempts=2).navigate_to(page, URL, lambda _m: None))
    assert len(page.visited) == 2


def test_robots_disallow_skips_without_navigating() -> None:
    robots = _Robots(allowed=False)
    navigator = Navigator(NavigationOptions(policy=RetryPolicy(max_attempts=1)), robots=robots)
    page = FakePage({URL: "<html></html>"})
    lines: list[str] = []

    assert not asyncio.run(navigator.navigate_to(page, URL, lines.append))
    assert page.visited == []
    assert robots.checked == [URL]
    assert lines == [f"robots.txt disallows {URL}, skipping"]
