#!/usr/bin/env python3
"""Crawl one storefront with a real browser and print the resulting SiteConfig.

Dev helper: in-memory stores, no HTTP server. Pass --vision-api-key (or set
VISION_API_KEY) to enable the vision classifier.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys

from siteintel.config.settings import get_settings
from siteintel.crawler.url_discovery import UrlDiscoverer
from siteintel.observability.logger import configure_logging
from siteintel.scraping.navigation import NavigationOptions, Navigator
from siteintel.scraping.playwright_driver import PlaywrightDriver
from siteintel.services.crawl_service import CrawlPipeline
from siteintel.storage.job_store import InMemoryJobStore, InMemorySiteConfigStore
from siteintel.utils.retry import RetryPolicy, linear_backoff
from siteintel.utils.robots import RobotsChecker
from siteintel.vision.factory import build_vision_runtime


async def crawl(url: str, *, api_key: str | None, respect_robots: bool, output: str | None) -> int:
    settings = get_settings()
    configure_logging()

    robots = RobotsChecker(cache_ttl_seconds=settings.robots_cache_ttl_seconds) if respect_robots else None
    navigator = Navigator(
        NavigationOptions(
            timeout_ms=settings.navigation_timeout_ms,
            idle_timeout_ms=settings.navigation_idle_timeout_ms,
            challenge_wait_ms=settings.challenge_wait_ms,
            policy=RetryPolicy(
                max_attempts=settings.navigation_max_attempts,
                backoff=linear_backoff(settings.navigation_backoff_ms / 1000),
            ),
        ),
        robots=robots,
        user_agent=settings.browser_user_agent,
    )
    jobs = InMemoryJobStore()
    pipeline = CrawlPipeline(
        jobs=jobs,
        configs=InMemorySiteConfigStore(),
        navigator=navigator,
        discoverer=UrlDiscoverer(samples_per_type=settings.samples_per_type, robots=robots),
        driver_factory=lambda: PlaywrightDriver(headless=settings.browser_headless, user_agent=settings.browser_user_agent),
        vision_factory=lambda key: build_vision_runtime(key, settings),
        settings=settings,
    )

    job = await pipeline.create_job(url)
    print(f"Job ID: {job.job_id}")
    print(f"Domain: {job.domain}")
    print(f"Vision: {'on' if api_key else 'off (DOM-only)'}\n")
    try:
        config = await pipeline.run(job.job_id, job.url, api_key)
    except Exception as e:
        record = await jobs.get(job.job_id)
        for line in record.logs if record else []:
            print(line)
        print(f"\nERROR {type(e).__name__}: {str(e)[:200]}", file=sys.stderr)
        return 1

    record = await jobs.get(job.job_id)
    for line in record.logs if record else []:
        print(line)

    print(f"\nIntents: {len(config.elements)}  coverage={config.coverage.overall_pct}%")
    for intent, entry in sorted(config.elements.items()):
        print(f"  {intent:<18} {entry.confidence:>3}  {entry.selectors[0]}")
    print(f"Page types: {', '.join(t.value for t in config.page_types)}")
    print(f"Products registered: {config.crawl_stats.products_registered}")
    print(f"Recipes: {len(config.interaction_recipes)}")

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(config.to_json_dict(), f, indent=2, ensure_ascii=False)
        print(f"\nWrote {output}")
    return 0


async def main() -> int:
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("url", help="Storefront root URL, e.g. https://www.example.com/")
    parser.add_argument("--vision-api-key", default=os.getenv("VISION_API_KEY"), help="Vision credential (or set VISION_API_KEY)")
    parser.add_argument("--ignore-robots", action="store_true", help="Skip robots.txt checks")
    parser.add_argument("--output", "-o", help="Write the SiteConfig JSON to this path")

    args = parser.parse_args()
    return await crawl(
        args.url,
        api_key=args.vision_api_key,
        respect_robots=not args.ignore_robots,
        output=args.output,
    )


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
