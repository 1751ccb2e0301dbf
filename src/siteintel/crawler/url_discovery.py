"""Sitemap-driven URL discovery.

Fetches the site's sitemap (following one level of sitemap index), merges in
navigation seed URLs, buckets everything by URL shape and picks a few diverse
samples per page type for the per-page probing phases.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Optional

import aiohttp
from bs4 import BeautifulSoup

from ..domain.models import PageType
from ..observability.logger import get_logger
from ..utils.robots import RobotsChecker
from ..utils.validators import is_same_site, path_of, path_segments
from .url_heuristics import classify_url

logger = get_logger(__name__)

DEFAULT_SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml", "/sitemap-index.xml", "/sitemaps.xml")
_SAMPLE_SCAN_LIMIT = 100

LogFn = Callable[[str], None]


@dataclass
class DiscoveredUrls:
    buckets: dict[PageType, list[str]] = field(default_factory=dict)
    samples: dict[PageType, list[str]] = field(default_factory=dict)
    sitemap_found: bool = False

    @property
    def total(self) -> int:
        return sum(len(v) for v in self.buckets.values())


def _parse_xml(xml: str) -> BeautifulSoup:
    return BeautifulSoup(xml, "xml")


_SITEMAP_ROOTS = frozenset({"urlset", "sitemapindex"})


def is_sitemap_document(xml: str) -> bool:
    """True when the document root is a ``urlset`` or ``sitemapindex``."""
    root = _parse_xml(xml).find()
    return root is not None and root.name in _SITEMAP_ROOTS


def extract_locs(xml: str) -> list[str]:
    """All ``<loc>`` values of a url set."""
    soup = _parse_xml(xml)
    return [loc.get_text(strip=True) for loc in soup.find_all("loc") if loc.get_text(strip=True)]


def extract_child_sitemaps(xml: str) -> list[str]:
    """``<sitemap><loc>`` entries; empty unless the document is a sitemap index."""
    soup = _parse_xml(xml)
    children: list[str] = []
    for sm in soup.find_all("sitemap"):
        loc = sm.find("loc")
        if loc is not None and loc.get_text(strip=True):
            children.append(loc.get_text(strip=True))
    return children


def cluster_urls(urls: Iterable[str], domain: str) -> dict[PageType, list[str]]:
    """Bucket same-site URLs by page type; utility pages are dropped."""
    buckets: dict[PageType, list[str]] = {}
    for url in urls:
        if not is_same_site(url, domain):
            continue
        page_type = classify_url(url)
        if page_type is PageType.OTHER:
            continue
        buckets.setdefault(page_type, []).append(url)
    return buckets


def pick_samples(urls: list[str], n: int) -> list[str]:
    """Round-robin across first-path-segment groups so samples span sub-trees."""
    if len(urls) <= n:
        return list(urls)

    groups: dict[str, list[str]] = {}
    for url in urls:
        segs = path_segments(url)
        groups.setdefault(segs[0] if segs else "_root", []).append(url)

    queues = [list(g) for g in groups.values()]
    picked: list[str] = []
    i = 0
    while len(picked) < n and i < _SAMPLE_SCAN_LIMIT and any(queues):
        queue = queues[i % len(queues)]
        if queue:
            picked.append(queue.pop(0))
        i += 1
    return picked


class UrlDiscoverer:
    def __init__(
        self,
        *,
        timeout_seconds: int = 10,
        max_children: int = 10,
        samples_per_type: int = 3,
        user_agent: str = "Mozilla/5.0 (compatible; SiteIntelCrawler/3.0)",
        robots: Optional[RobotsChecker] = None,
        sitemap_paths: tuple[str, ...] = DEFAULT_SITEMAP_PATHS,
    ):
        self._timeout = timeout_seconds
        self._max_children = max_children
        self._samples_per_type = samples_per_type
        self._user_agent = user_agent
        self._robots = robots
        self._sitemap_paths = sitemap_paths

    async def fetch_text(self, session: aiohttp.ClientSession, url: str) -> Optional[str]:
        """GET ``url``; any failure or non-2xx status is ``None``."""
        try:
            async with session.get(url) as resp:
                if resp.status >= 400:
                    return None
                return await resp.text(errors="ignore")
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            logger.debug("sitemap_fetch_failed", url=url, error=str(e))
            return None

    async def _sitemap_roots(self, origin: str) -> list[str]:
        roots: list[str] = []
        if self._robots is not None:
            roots.extend(await self._robots.sitemaps(origin))
        for path in self._sitemap_paths:
            candidate = f"{origin}{path}"
            if candidate not in roots:
                roots.append(candidate)
        return roots

    async def _collect_sitemap(self, session: aiohttp.ClientSession, origin: str, log: LogFn) -> tuple[list[str], bool]:
        for sitemap_url in await self._sitemap_roots(origin):
            log(f"fetching sitemap: {sitemap_url}")
            xml = await self.fetch_text(session, sitemap_url)
            if not xml:
                continue
            if not is_sitemap_document(xml):
                log("  not a sitemap document, skipping")
                continue

            children = extract_child_sitemaps(xml)
            if not children:
                locs = extract_locs(xml)
                log(f"  direct sitemap: {len(locs)} URLs")
                return locs, True

            log(f"  sitemap index with {len(children)} child sitemaps")
            batch = children[: self._max_children]
            texts = await asyncio.gather(*(self.fetch_text(session, c) for c in batch))
            urls: list[str] = []
            for child_url, child_xml in zip(batch, texts):
                if not child_xml:
                    continue
                locs = extract_locs(child_xml)
                log(f"  child sitemap {child_url}: {len(locs)} URLs")
                urls.extend(locs)
            return urls, True
        return [], False

    async def discover(
        self,
        origin: str,
        domain: str,
        *,
        seed_urls: Iterable[str] = (),
        log: LogFn = lambda _msg: None,
    ) -> DiscoveredUrls:
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        headers = {"User-Agent": self._user_agent, "Accept": "text/xml,application/xml,text/plain"}
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            sitemap_urls, found = await self._collect_sitemap(session, origin, log)

        if not found:
            log("no sitemap found, falling back to navigation seed URLs")

        all_urls = list(dict.fromkeys([*sitemap_urls, *seed_urls]))
        log(f"total URLs before clustering: {len(all_urls)}")

        buckets = cluster_urls(all_urls, domain)
        samples: dict[PageType, list[str]] = {}
        for page_type, urls in buckets.items():
            samples[page_type] = pick_samples(urls, self._samples_per_type)
            paths = ", ".join(path_of(u) for u in samples[page_type])
            log(f"[{page_type.value}] {len(urls)} URLs -> {len(samples[page_type])} samples: {paths}")

        logger.info("urls_discovered", domain=domain, sitemap_found=found, total=len(all_urls))
        return DiscoveredUrls(buckets=buckets, samples=samples, sitemap_found=found)
