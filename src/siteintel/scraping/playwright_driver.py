"""Playwright implementation of the browser driver boundary."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..domain.errors import NavigationError, NetworkTimeoutError
from ..observability.logger import get_logger
from .driver import BrowserDriver, PageSession, ScrollState

logger = get_logger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""

# Writes layout facts into data-si-* attributes so the serialised HTML can be
# analysed offline (see crawler.dom).
ANNOTATE_SCRIPT = """
() => {
  const all = document.querySelectorAll('body *');
  for (const el of all) {
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const hidden = style.display === 'none' || style.visibility === 'hidden' ||
      (rect.width === 0 && rect.height === 0 && el.getClientRects().length === 0);
    if (hidden) el.setAttribute('data-si-hidden', '1'); else el.removeAttribute('data-si-hidden');
    if (el.tagName === 'A') {
      el.setAttribute('data-si-area', String(Math.round(rect.width * rect.height)));
      el.setAttribute('data-si-top', String(Math.round(rect.top + window.scrollY)));
    }
    if (el.tagName === 'IMG' && el.currentSrc) el.setAttribute('data-si-src', el.currentSrc);
    const bg = style.backgroundImage;
    if (bg && bg !== 'none') el.setAttribute('data-si-bg', bg);
  }
  return all.length;
}
"""

SCROLL_SCRIPT = """
(px) => {
  window.scrollBy({ top: px, behavior: 'instant' });
  return [window.scrollY, document.documentElement.scrollHeight, window.innerHeight];
}
"""

VISIBLE_SECONDS = 1.5
CLICK_TIMEOUT_MS = 2000


class PlaywrightPageSession(PageSession):
    def __init__(self, page: Page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, *, timeout_ms: int) -> Optional[int]:
        try:
            response = await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
            raise NetworkTimeoutError(f"Timeout while loading {url}", detail=str(e)) from e
        except PlaywrightError as e:
            raise NavigationError(f"Navigation to {url} failed", detail=str(e)) from e
        return response.status if response is not None else None

    async def wait_for_idle(self, timeout_ms: int) -> None:
        # networkidle is noisy on sites with background polling; the goto already succeeded
        try:
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError:
            pass

    async def wait_ms(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)

    async def title(self) -> str:
        try:
            return await self._page.title()
        except PlaywrightError:
            return ""

    async def snapshot(self) -> str:
        try:
            await self._page.evaluate(ANNOTATE_SCRIPT)
            return await self._page.content()
        except PlaywrightTimeoutError as e:
            raise NetworkTimeoutError("Timeout while reading page content", detail=str(e)) from e
        except PlaywrightError as e:
            raise NavigationError("Page content unavailable", detail=str(e)) from e

    async def screenshot(self, *, full_page: bool = True) -> bytes:
        try:
            return await self._page.screenshot(full_page=full_page, type="png")
        except PlaywrightError as e:
            raise NavigationError("Screenshot failed", detail=str(e)) from e

    async def viewport_height(self) -> int:
        size = self._page.viewport_size
        return int(size["height"]) if size else 800

    async def scroll_by(self, pixels: int) -> ScrollState:
        try:
            y, height, viewport = await self._page.evaluate(SCROLL_SCRIPT, pixels)
        except PlaywrightError as e:
            raise NavigationError("Scroll failed", detail=str(e)) from e
        return ScrollState(scroll_y=int(y), scroll_height=int(height), viewport_height=int(viewport))

    async def scroll_to_top(self) -> None:
        try:
            await self._page.evaluate("() => window.scrollTo({ top: 0, behavior: 'instant' })")
        except PlaywrightError as e:
            raise NavigationError("Scroll failed", detail=str(e)) from e

    async def any_visible(self, selector: str) -> bool:
        try:
            return await self._page.locator(selector).first.is_visible()
        except PlaywrightError:
            return False

    async def click_if_visible(self, selector: str) -> bool:
        try:
            el = self._page.locator(selector).first
            if await el.is_visible():
                await el.click(timeout=CLICK_TIMEOUT_MS, force=True)
                return True
        except PlaywrightError:
            pass
        return False

    async def click_first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            try:
                for el in await self._page.locator(selector).all():
                    if await el.is_visible():
                        await el.click(timeout=CLICK_TIMEOUT_MS)
                        return selector
            except PlaywrightError:
                continue
        return None

    async def click_button_named(self, phrases: Sequence[str]) -> Optional[str]:
        for phrase in phrases:
            pattern = re.compile(f"^{re.escape(phrase)}$", re.I)
            try:
                for btn in await self._page.get_by_role("button", name=pattern).all():
                    if await btn.is_visible():
                        await btn.click(timeout=CLICK_TIMEOUT_MS, force=True)
                        return phrase
            except PlaywrightError:
                continue
        return None

    async def press_escape(self) -> None:
        try:
            await self._page.keyboard.press("Escape")
        except PlaywrightError:
            pass

    async def hover_each(self, selector: str, *, limit: int, pause_ms: int = 300) -> int:
        hovered = 0
        try:
            items = await self._page.locator(selector).all()
        except PlaywrightError:
            return 0
        for item in items[:limit]:
            try:
                if not await item.is_visible():
                    continue
                await item.hover(timeout=CLICK_TIMEOUT_MS)
                await self._page.wait_for_timeout(pause_ms)
                hovered += 1
            except PlaywrightError:
                continue
        return hovered

    async def wait_for_challenge_clear(self, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_function(
                "() => !document.title.toLowerCase().includes('just a moment') && "
                "!document.title.toLowerCase().includes('security check') && "
                "!document.querySelector('#challenge-running, #cf-challenge-running')",
                timeout=timeout_ms,
            )
            return True
        except PlaywrightError:
            return False


class PlaywrightDriver(BrowserDriver):
    """One Chromium instance and one stealth-configured context per crawl job."""

    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str,
        viewport_width: int = 1440,
        viewport_height: int = 900,
        locale: str = "en-US",
        timezone_id: str = "UTC",
    ):
        self._headless = headless
        self._user_agent = user_agent
        self._viewport = {"width": viewport_width, "height": viewport_height}
        self._locale = locale
        self._timezone_id = timezone_id
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._lock = asyncio.Lock()

    async def _ensure_context(self) -> BrowserContext:
        async with self._lock:
            if self._context is None:
                self._playwright = await async_playwright().start()
                try:
                    self._browser = await self._playwright.chromium.launch(headless=self._headless, args=LAUNCH_ARGS)
                    context = await self._browser.new_context(
                        user_agent=self._user_agent,
                        viewport=self._viewport,
                        locale=self._locale,
                        timezone_id=self._timezone_id,
                    )
                    await context.add_init_script(STEALTH_INIT_SCRIPT)
                except BaseException:
                    logger.warning("browser_launch_failed", headless=self._headless)
                    await self._teardown()
                    raise
                self._context = context
                logger.info("browser_launched", headless=self._headless)
            return self._context

    async def _teardown(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
            if self._playwright is not None:
                await self._playwright.stop()
        finally:
            self._context = None
            self._browser = None
            self._playwright = None

    @asynccontextmanager
    async def page(self) -> AsyncIterator[PageSession]:
        context = await self._ensure_context()
        page = await context.new_page()
        try:
            yield PlaywrightPageSession(page)
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug("page_close_failed", error=str(e))

    async def close(self) -> None:
        async with self._lock:
            try:
                await self._teardown()
            finally:
                logger.info("browser_closed")
