"""robots.txt support.

Two uses in the crawl: politeness checks before navigation (when enabled) and
``Sitemap:`` declarations, which are the most reliable sitemap location.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import aiohttp

from ..observability.logger import get_logger

logger = get_logger(__name__)


def _now() -> float:
    return time.monotonic()


def _allow_all() -> RobotFileParser:
    parser = RobotFileParser()
    parser.parse([])
    return parser


@dataclass
class _RobotsEntry:
    parser: RobotFileParser
    expires_at: float


class RobotsChecker:
    """robots.txt checker with an in-memory TTL cache.

    Policy: if robots.txt cannot be fetched or parsed, everything is allowed (fail-open).
    """

    def __init__(self, *, cache_ttl_seconds: int = 3600, timeout_seconds: int = 10, user_agent: str = "*"):
        self._ttl = int(cache_ttl_seconds)
        self._timeout = int(timeout_seconds)
        self._user_agent = user_agent
        self._cache: dict[str, _RobotsEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @staticmethod
    def _origin(url: str) -> str:
        p = urlparse(url)
        return f"{(p.scheme or 'http').lower()}://{(p.netloc or '').lower()}"

    async def _fetch(self, origin: str) -> RobotFileParser:
        robots_url = f"{origin}/robots.txt"
        parser = RobotFileParser()
        parser.set_url(robots_url)

        timeout = aiohttp.ClientTimeout(total=self._timeout)
        headers = {"User-Agent": self._user_agent}
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            async with session.get(robots_url) as resp:
                if resp.status >= 400:
                    # Missing robots -> allow all.
                    parser.parse([])
                    return parser
                text = await resp.text(errors="ignore")
                parser.parse(text.splitlines())
                return parser

    async def _get_parser(self, url: str) -> RobotFileParser:
        origin = self._origin(url)
        if origin.endswith("://"):
            return _allow_all()

        entry = self._cache.get(origin)
        if entry and entry.expires_at > _now():
            return entry.parser

        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            entry = self._cache.get(origin)
            if entry and entry.expires_at > _now():
                return entry.parser
            try:
                parser = await self._fetch(origin)
            except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
                logger.info("robots_fetch_failed", origin=origin, error=str(e))
                parser = _allow_all()
            self._cache[origin] = _RobotsEntry(parser=parser, expires_at=_now() + self._ttl)
            return parser

    async def is_allowed(self, url: str, *, user_agent: str | None = None) -> bool:
        """Return True if robots.txt allows fetching the given URL."""
        parser = await self._get_parser(url)
        return bool(parser.can_fetch(user_agent or self._user_agent, url))

    async def sitemaps(self, origin: str) -> list[str]:
        """Sitemap URLs declared in the origin's robots.txt (possibly empty)."""
        parser = await self._get_parser(origin)
        return list(parser.site_maps() or [])
