from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError

from siteintel.scraping import playwright_driver
from siteintel.scraping.playwright_driver import PlaywrightDriver


class _BrokenChromium:
    def __init__(self) -> None:
        self.launches = 0

    async def launch(self, **kwargs):
        self.launches += 1
        raise PlaywrightError("Executable doesn't exist at /ms-playwright/chromium")


class _RecordingPlaywright:
    def __init__(self) -> None:
        self.chromium = _BrokenChromium()
        self.stopped = 0

    async def stop(self) -> None:
        self.stopped += 1


def test_failed_launch_stops_playwright_and_allows_retry(monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[_RecordingPlaywright] = []

    def fake_async_playwright():
        async def start() -> _RecordingPlaywright:
            pw = _RecordingPlaywright()
            started.append(pw)
            return pw

        return SimpleNamespace(start=start)

    monkeypatch.setattr(playwright_driver, "async_playwright", fake_async_playwright)
    driver = PlaywrightDriver(user_agent="test-agent")

    async def open_page() -> None:
        async with driver.page():
            pass

    for _ in range(2):
        with pytest.raises(PlaywrightError):
            asyncio.run(open_page())

    assert len(started) == 2
    assert all(pw.stopped == 1 for pw in started)
    assert driver._playwright is None
    assert driver._browser is None
    assert driver._context is None
