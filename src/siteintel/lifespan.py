"""Application lifespan management (startup/shutdown hooks)."""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager

from .config.settings import get_settings
from .crawler.url_discovery import UrlDiscoverer
from .observability.logger import configure_logging, get_logger
from .scraping.navigation import NavigationOptions, Navigator
from .scraping.playwright_driver import PlaywrightDriver
from .services.crawl_service import CrawlPipeline
from .services.site_config_service import SiteConfigService
from .storage.database import build_engine, build_session_factory, close_db, init_db
from .storage.repositories import SqlJobStore, SqlSiteConfigStore
from .utils.rate_limiter import DomainRateLimiter
from .utils.retry import RetryPolicy, linear_backoff
from .utils.robots import RobotsChecker
from .vision.factory import build_vision_runtime

logger = get_logger(__name__)

# Wired services shared with the HTTP layer
app_state: dict = {}


@asynccontextmanager
async def lifespan_manager():
    """Manage application lifespan (startup and shutdown)."""
    settings = get_settings()

    configure_logging()
    logger.info("starting_application", service_name=settings.service_name)

    engine = build_engine(settings.database_url)
    await init_db(engine)
    session_factory = build_session_factory(engine)
    logger.info("database_initialized")

    rate_limiter = None
    if settings.enable_rate_limiting:
        rate_limiter = DomainRateLimiter(requests_per_second=settings.rate_limit_per_domain_rps)
        logger.info("rate_limiter_enabled", rate_limit_per_domain_rps=settings.rate_limit_per_domain_rps)

    robots_checker = None
    if settings.respect_robots_txt:
        robots_checker = RobotsChecker(
            cache_ttl_seconds=settings.robots_cache_ttl_seconds,
            timeout_seconds=settings.robots_timeout_seconds,
        )
    logger.info(
        "robots_checker_configured",
        respect_robots_txt=settings.respect_robots_txt,
        robots_cache_ttl_seconds=settings.robots_cache_ttl_seconds,
    )

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
        robots=robots_checker,
        rate_limiter=rate_limiter,
        user_agent=settings.browser_user_agent,
    )
    discoverer = UrlDiscoverer(
        timeout_seconds=settings.sitemap_timeout_seconds,
        max_children=settings.sitemap_max_children,
        samples_per_type=settings.samples_per_type,
        user_agent=settings.sitemap_user_agent,
        robots=robots_checker,
    )

    def driver_factory() -> PlaywrightDriver:
        return PlaywrightDriver(
            headless=settings.browser_headless,
            user_agent=settings.browser_user_agent,
            viewport_width=settings.viewport_width,
            viewport_height=settings.viewport_height,
            locale=settings.browser_locale,
            timezone_id=settings.browser_timezone,
        )

    jobs = SqlJobStore(session_factory=session_factory)
    configs = SqlSiteConfigStore(session_factory=session_factory)

    app_state["jobs"] = jobs
    app_state["site_configs"] = SiteConfigService(configs, coverage_threshold=settings.coverage_confidence_threshold)
    app_state["pipeline"] = CrawlPipeline(
        jobs=jobs,
        configs=configs,
        navigator=navigator,
        discoverer=discoverer,
        driver_factory=driver_factory,
        vision_factory=lambda api_key: build_vision_runtime(api_key, settings),
        settings=settings,
    )
    app_state["tasks"] = set()

    logger.info("application_started")
    try:
        yield
    finally:
        tasks: set[asyncio.Task] = app_state.get("tasks") or set()
        for task in tasks:
            task.cancel()
        for task in list(tasks):
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        app_state.clear()
        await close_db(engine)
        logger.info("application_shutdown_complete")
