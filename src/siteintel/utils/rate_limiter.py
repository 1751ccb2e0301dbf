"""Async per-domain politeness limiter.

Enforces a minimum interval between navigations to the same site so the
registry crawl (which can visit hundreds of pages) stays polite.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

from .validators import domain_of


@dataclass
class _DomainSlot:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_allowed_at: float = 0.0


class DomainRateLimiter:
    """Per-domain rate limiter.

    Args:
        requests_per_second: Allowed navigations per second per domain. ``<= 0`` disables limiting.
    """

    def __init__(self, requests_per_second: float, *, clock=time.monotonic):
        self._rps = float(requests_per_second)
        self._clock = clock
        self._slots: dict[str, _DomainSlot] = {}

    @property
    def enabled(self) -> bool:
        return self._rps > 0

    @property
    def min_interval_s(self) -> float:
        return 1.0 / self._rps if self._rps > 0 else 0.0

    def _slot(self, domain: str) -> _DomainSlot:
        return self._slots.setdefault(domain, _DomainSlot())

    async def wait_for_slot(self, url: str) -> None:
        """Wait until another navigation to the URL's domain is allowed."""
        if not self.enabled:
            return
        domain = domain_of(url)
        if not domain:
            return

        slot = self._slot(domain)
        async with slot.lock:
            wait_s = slot.next_allowed_at - self._clock()
            if wait_s > 0:
                await asyncio.sleep(wait_s)
            slot.next_allowed_at = self._clock() + self.min_interval_s
