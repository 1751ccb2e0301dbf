"""Resilient page navigation.

A navigation is: hard-timeout goto, best-effort idle wait, anti-bot
interstitial check with a bounded poll. Transient failures are retried under a
RetryPolicy; when the budget is spent the page is reported as unreachable and
the caller skips it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Optional

from ..domain.errors import TRANSIENT_NAVIGATION_ERRORS, AntiBotChallengeError
from ..observability.logger import get_logger
from ..utils.rate_limiter import DomainRateLimiter
from ..utils.retry import RetryPolicy, linear_backoff, retry_async
from ..utils.robots import RobotsChecker
from .driver import PageSession

logger = get_logger(__name__)

CHALLENGE_TITLE_PHRASES = ("just a moment", "security check")
CHALLENGE_MARKERS = "#challenge-running, #cf-challenge-running, .cf-turnstile"

LogFn = Callable[[str], None]


@dataclass(frozen=True)
class NavigationOptions:
    timeout_ms: int = 30000
    idle_timeout_ms: int = 10000
    challenge_wait_ms: int = 15000
    policy: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3, backoff=linear_backoff(2.0)))


async def is_challenge_page(page: PageSession) -> bool:
    title = (await page.title()).lower()
    if any(phrase in title for phrase in CHALLENGE_TITLE_PHRASES):
        return True
    return await page.any_visible(CHALLENGE_MARKERS)


class Navigator:
    """Navigation with politeness hooks (robots.txt, per-domain pacing) and retries."""

    def __init__(
        self,
        options: NavigationOptions | None = None,
        *,
        robots: RobotsChecker | None = None,
        rate_limiter: DomainRateLimiter | None = None,
        user_agent: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.options = options or NavigationOptions()
        self._robots = robots
        self._rate_limiter = rate_limiter
        self._user_agent = user_agent
        self._sleep = sleep

    async def _attempt(self, page: PageSession, url: str, log: LogFn) -> Optional[int]:
        opts = self.options
        if self._rate_limiter is not None:
            await self._rate_limiter.wait_for_slot(url)

        status = await page.goto(url, timeout_ms=opts.timeout_ms)
        await page.wait_for_idle(opts.idle_timeout_ms)

        if await is_challenge_page(page):
            log(f"anti-bot challenge on {url}, waiting...")
            if not await page.wait_for_challenge_clear(opts.challenge_wait_ms):
                raise AntiBotChallengeError("challenge did not clear", detail=url)
            await page.wait_for_idle(opts.idle_timeout_ms)
        return status

    async def navigate_to(self, page: PageSession, url: str, log: LogFn) -> bool:
        """Load ``url`` in ``page``; False means the page should be skipped."""
        if self._robots is not None and not await self._robots.is_allowed(url, user_agent=self._user_agent):
            log(f"robots.txt disallows {url}, skipping")
            return False

        def on_retry(attempt: int, error: BaseException) -> None:
            log(f"navigation attempt {attempt} failed for {url}: {error}")

        try:
            await retry_async(
                lambda: self._attempt(page, url, log),
                self.options.policy,
                retry_on=TRANSIENT_NAVIGATION_ERRORS,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except TRANSIENT_NAVIGATION_ERRORS as e:
            log(f"navigate failed: {url}: {e}")
            logger.warning("navigation_failed", url=url, error=str(e), code=e.info.code)
            return False
        return True
