"""Browser driver boundary.

The crawl phases only talk to these two interfaces. Everything that needs real
layout (visibility, clicks, scrolling, screenshots) is a driver primitive; all
DOM analysis happens afterwards on the annotated ``snapshot()`` HTML.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Optional

BOTTOM_SLACK_PX = 100


@dataclass(frozen=True)
class ScrollState:
    scroll_y: int
    scroll_height: int
    viewport_height: int

    @property
    def at_bottom(self) -> bool:
        return self.scroll_y + self.viewport_height >= self.scroll_height - BOTTOM_SLACK_PX


class PageSession(ABC):
    """One open browser tab. Every method may suspend on the remote page."""

    @property
    @abstractmethod
    def url(self) -> str: ...

    @abstractmethod
    async def goto(self, url: str, *, timeout_ms: int) -> Optional[int]:
        """Navigate and return the main response status (None when the driver saw no response).

        Raises NetworkTimeoutError on timeout and NavigationError on network failure.
        """

    @abstractmethod
    async def wait_for_idle(self, timeout_ms: int) -> None:
        """Best-effort network-idle wait; never raises on timeout."""

    @abstractmethod
    async def wait_ms(self, ms: int) -> None: ...

    @abstractmethod
    async def title(self) -> str: ...

    @abstractmethod
    async def snapshot(self) -> str:
        """Serialised HTML with layout annotations (see ``crawler.dom``)."""

    @abstractmethod
    async def screenshot(self, *, full_page: bool = True) -> bytes: ...

    @abstractmethod
    async def viewport_height(self) -> int: ...

    @abstractmethod
    async def scroll_by(self, pixels: int) -> ScrollState: ...

    @abstractmethod
    async def scroll_to_top(self) -> None: ...

    @abstractmethod
    async def any_visible(self, selector: str) -> bool: ...

    @abstractmethod
    async def click_if_visible(self, selector: str) -> bool: ...

    @abstractmethod
    async def click_first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        """Click the first visible element among all matches; return the selector that hit."""

    @abstractmethod
    async def click_button_named(self, phrases: Sequence[str]) -> Optional[str]:
        """Click a visible button whose accessible name equals one of ``phrases`` (case-insensitive)."""

    @abstractmethod
    async def press_escape(self) -> None: ...

    @abstractmethod
    async def hover_each(self, selector: str, *, limit: int, pause_ms: int = 300) -> int:
        """Hover over up to ``limit`` visible matches; return how many were hovered."""

    @abstractmethod
    async def wait_for_challenge_clear(self, timeout_ms: int) -> bool:
        """Poll until an anti-bot interstitial goes away; False if it is still there."""


class BrowserDriver(ABC):
    """Owns one browser instance for the lifetime of a crawl job."""

    @abstractmethod
    def page(self) -> AbstractAsyncContextManager[PageSession]:
        """Open a fresh page; it is closed when the context exits, on every path."""

    @abstractmethod
    async def close(self) -> None: ...
