"""Crawl pipeline orchestration (business logic).

One job runs five phases strictly in order:

1. reconnaissance: home page navigation, sitemap discovery, sample buckets
2. URL registry: exhaustive category crawl and URL pattern induction
3. feature detection: vision-led when a credential is supplied, DOM-only otherwise
4. interaction recipes
5. assembly: DOM selector consensus, coverage, page-type rules, persistence

Job status and logs are persisted after every phase and once more in the
finalizer. The browser driver is created per job and closed exactly once.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from ..config.settings import CrawlerSettings, get_settings
from ..crawler.consensus import calculate_coverage, score_consensus
from ..crawler.dom import parse_html
from ..crawler.features import FeatureExtractor, convert_elements_to_features
from ..crawler.navigation import (
    build_nav_graph,
    extract_main_nav,
    needs_home_supplement,
    reveal_hidden_menus,
    supplement_nav_with_home_links,
)
from ..crawler.page_classifier import classify_page
from ..crawler.probe import probe_page
from ..crawler.recipes import build_recipes, validate_recipes
from ..crawler.taxonomy import intents_for_page_type, verify_modes
from ..crawler.url_discovery import UrlDiscoverer
from ..crawler.url_registry import RegistryBuildResult, RegistryOptions, UrlRegistryBuilder
from ..domain.errors import CrawlerDomainError, InvalidURLError
from ..domain.models import (
    CrawlPhase,
    JobStatus,
    PageProbeResults,
    PageType,
    VisualClassification,
)
from ..models.site_config import (
    CrawlJob,
    CrawlStats,
    Feature,
    InteractionRecipe,
    NavEdge,
    PageTypeRule,
    SelectorEntry,
    SiteConfig,
)
from ..observability.logger import bind_job_context, get_logger
from ..scraping.driver import BrowserDriver
from ..scraping.navigation import Navigator
from ..scraping.popups import dismiss_popups
from ..scraping.scrolling import scroll_to_reveal
from ..storage.job_store import JobStore, SiteConfigStore
from ..utils.time import current_time_ms, elapsed_ms, utc_now_iso
from ..utils.validators import domain_of, is_valid_http_url, origin_of
from ..vision.parsing import Malformed, UrlInteractionAnalysis
from ..vision.runtime import VisionRuntime
from .assembly import (
    build_listing_schema,
    build_meta,
    build_product_schema,
    merge_overlay,
    merge_page_type_rules,
    pick_diverse_products,
    registry_category_samples,
)

logger = get_logger(__name__)

PROBE_TYPE_ORDER: tuple[PageType, ...] = (
    PageType.HOME,
    PageType.CATEGORY,
    PageType.PRODUCT,
    PageType.CART,
    PageType.SEARCH,
    PageType.OTHER,
)
HOME_RENDER_WAIT_MS = 3000
PROBE_SCROLL_STEPS = 10
PRODUCT_SAMPLE_BACKFILL = 3
MIN_CATEGORY_SAMPLES = 2

Samples = dict[PageType, list[str]]


class CrawlLog:
    """Ordered job log; every line is also emitted as a structured event."""

    def __init__(self, job_id: str):
        self._job_id = job_id
        self._lines: list[str] = []

    def __call__(self, message: str) -> None:
        self._lines.append(message)
        logger.info("crawl_log", job_id=self._job_id, message=message)

    def snapshot(self) -> list[str]:
        return list(self._lines)


@dataclass
class ReconResult:
    main_nav: list[NavEdge]
    samples: Samples
    visual: list[VisualClassification] = field(default_factory=list)
    home_soup: Optional[BeautifulSoup] = None
    home_html: str = ""


@dataclass
class ProbeSummary:
    elements: dict[str, SelectorEntry]
    dom_rules: dict[PageType, PageTypeRule]
    sample_counts: dict[PageType, int]

    @property
    def pages_visited(self) -> int:
        return sum(self.sample_counts.values())


@dataclass
class _Job:
    """Per-run collaborators and mutable job record."""

    record: CrawlJob
    log: CrawlLog
    driver: BrowserDriver
    vision: Optional[VisionRuntime]
    origin: str
    domain: str


def new_job(url: str, job_id: Optional[str] = None) -> CrawlJob:
    if not is_valid_http_url(url):
        raise InvalidURLError("url must be an absolute http(s) URL", detail=url)
    return CrawlJob(
        job_id=job_id or uuid.uuid4().hex,
        domain=domain_of(url),
        url=url,
        status=JobStatus.PENDING,
        started_at=utc_now_iso(),
    )


class CrawlPipeline:
    """Runs crawl jobs against injected stores, driver factory and vision factory."""

    def __init__(
        self,
        *,
        jobs: JobStore,
        configs: SiteConfigStore,
        navigator: Navigator,
        discoverer: UrlDiscoverer,
        driver_factory: Callable[[], BrowserDriver],
        vision_factory: Callable[[Optional[str]], Optional[VisionRuntime]],
        settings: CrawlerSettings | None = None,
    ):
        self._jobs = jobs
        self._configs = configs
        self._navigator = navigator
        self._discoverer = discoverer
        self._driver_factory = driver_factory
        self._vision_factory = vision_factory
        self._settings = settings or get_settings()

    async def create_job(self, url: str) -> CrawlJob:
        job = new_job(url)
        await self._jobs.create(job)
        logger.info("crawl_job_created", job_id=job.job_id, domain=job.domain)
        return job

    async def _flush(self, job: _Job, **changes) -> None:
        job.record = job.record.model_copy(update={**changes, "logs": job.log.snapshot()})
        await self._jobs.update(job.record)

    # ── Phase 1 ──────────────────────────────────────────────────────────────

    async def _classify_visually(self, job: _Job, url: str, screenshot: bytes) -> Optional[VisualClassification]:
        try:
            result = await job.vision.classify_page(screenshot)
        except CrawlerDomainError as e:
            job.log(f"VLM classification failed for {url}: {e}")
            return None
        if isinstance(result, Malformed):
            job.log(f"VLM returned an unparseable classification for {url} ({result.reason})")
            return None
        analysis = result.value
        return VisualClassification(url=url, page_type=analysis.page_type, confidence=analysis.confidence)

    async def _load_home(self, job: _Job, root_url: str) -> tuple[list[NavEdge], Optional[BeautifulSoup], str, Optional[VisualClassification]]:
        async with job.driver.page() as page:
            if not await self._navigator.navigate_to(page, root_url, job.log):
                job.log("home page unreachable, continuing with sitemap discovery only")
                return [], None, "", None
            await dismiss_popups(page, job.log)
            await page.wait_ms(HOME_RENDER_WAIT_MS)
            await reveal_hidden_menus(page, job.log)
            html = await page.snapshot()
            soup = parse_html(html)
            main_nav = extract_main_nav(soup, page.url or root_url, job.domain, job.log)
            visual = None
            if job.vision is not None:
                visual = await self._classify_visually(job, root_url, await page.screenshot(full_page=False))
            return main_nav, soup, html, visual

    async def _rebucket(self, job: _Job, samples: Samples, visual: list[VisualClassification]) -> None:
        threshold = self._settings.vision_reclassify_confidence
        for page_type in list(samples):
            urls = samples[page_type]
            if page_type is PageType.HOME or not urls:
                continue
            url = urls[0]
            try:
                async with job.driver.page() as page:
                    if not await self._navigator.navigate_to(page, url, job.log):
                        continue
                    vc = await self._classify_visually(job, url, await page.screenshot(full_page=False))
            except CrawlerDomainError as e:
                job.log(f"VLM classification error: {e}")
                continue
            if vc is None:
                continue
            visual.append(vc)
            if vc.page_type is not page_type and vc.confidence > threshold:
                job.log(f"VLM reclassified {url} from {page_type.value} to {vc.page_type.value}")
                samples.setdefault(vc.page_type, []).append(url)
                samples[page_type] = [u for u in urls if u != url]

    async def reconnaissance(self, job: _Job) -> ReconResult:
        root_url = job.record.url
        try:
            main_nav, home_soup, home_html, home_visual = await self._load_home(job, root_url)
        except CrawlerDomainError as e:
            job.log(f"home page failed: {e}")
            main_nav, home_soup, home_html, home_visual = [], None, "", None
        job.log(f"main nav: {len(main_nav)} links")
        visual = [home_visual] if home_visual is not None else []

        discovered = await self._discoverer.discover(
            job.origin, job.domain, seed_urls=[e.href for e in main_nav], log=job.log
        )
        samples: Samples = {k: list(v) for k, v in discovered.samples.items()}
        if not samples.get(PageType.HOME):
            samples[PageType.HOME] = [root_url]

        if job.vision is not None:
            await self._rebucket(job, samples, visual)

        job.log("sample URLs per type: " + ", ".join(f"{k.value}:{len(v)}" for k, v in samples.items()))
        return ReconResult(main_nav=main_nav, samples=samples, visual=visual, home_soup=home_soup, home_html=home_html)

    # ── Phase 2 ──────────────────────────────────────────────────────────────

    def _registry_options(self) -> RegistryOptions:
        s = self._settings
        return RegistryOptions(
            max_categories=s.registry_max_categories,
            max_products_per_category=s.registry_max_products_per_category,
            max_pagination_pages=s.registry_max_pagination_pages,
            validation_sample=s.registry_validation_sample,
            validation_timeout_ms=s.validation_timeout_ms,
        )

    async def build_registry(self, job: _Job, recon: ReconResult) -> tuple[list[NavEdge], RegistryBuildResult]:
        nav = recon.main_nav
        if recon.home_soup is not None and needs_home_supplement(nav):
            job.log("nav has few category links, scanning home page for more...")
            nav = supplement_nav_with_home_links(nav, recon.home_soup, job.record.url, job.domain, job.log)
            if len(nav) > len(recon.main_nav):
                job.log(f"supplemented nav: {len(recon.main_nav)} -> {len(nav)} links")

        builder = UrlRegistryBuilder(job.driver, self._navigator, self._registry_options())
        result = await builder.build(nav, job.log)
        registry = result.registry
        job.log(f"URL registry: {len(registry.products)} products, {len(registry.categories)} categories")

        samples = recon.samples
        if registry.products and not samples.get(PageType.PRODUCT):
            samples[PageType.PRODUCT] = pick_diverse_products(registry.products, PRODUCT_SAMPLE_BACKFILL)
            job.log(f"injected {len(samples[PageType.PRODUCT])} product URLs into sample buckets")
        if registry.categories and len(samples.get(PageType.CATEGORY, [])) < MIN_CATEGORY_SAMPLES:
            replacement = registry_category_samples(registry)
            if replacement:
                samples[PageType.CATEGORY] = replacement
                job.log(f"replaced category samples with {len(replacement)} URLs from registry")
        return nav, result

    # ── DOM probing (phase 3 fallback and phase 5) ───────────────────────────

    async def _probe_url(self, job: _Job, url: str, page_type: PageType) -> Optional[tuple[PageProbeResults, PageType, PageTypeRule]]:
        async with job.driver.page() as page:
            if not await self._navigator.navigate_to(page, url, job.log):
                return None
            await dismiss_popups(page, job.log)
            await scroll_to_reveal(page, job.log, max_steps=PROBE_SCROLL_STEPS)
            soup = parse_html(await page.snapshot())
        classification = classify_page(soup, url)
        return probe_page(soup, intents_for_page_type(page_type)), classification.page_type, classification.rule

    async def probe_samples(self, job: _Job, samples: Samples) -> ProbeSummary:
        all_results: list[PageProbeResults] = []
        dom_rules: dict[PageType, PageTypeRule] = {}
        counts: dict[PageType, int] = {}

        for page_type in PROBE_TYPE_ORDER:
            urls = samples.get(page_type) or []
            if not urls:
                continue
            job.log(f"[dom-probe][{page_type.value}] {len(urls)} sample(s)")
            for idx, url in enumerate(urls, start=1):
                job.log(f"[dom-probe][{page_type.value}][{idx}/{len(urls)}] {url}")
                try:
                    probed = await self._probe_url(job, url, page_type)
                except CrawlerDomainError as e:
                    job.log(f"  error: {e}")
                    continue
                if probed is None:
                    continue
                results, classified_type, rule = probed
                dom_rules.setdefault(classified_type, rule)
                all_results.append(results)
                counts[page_type] = counts.get(page_type, 0) + 1
                job.log(f"  matched {len(results)}/{len(intents_for_page_type(page_type))} intents")

        elements = score_consensus(
            all_results,
            verify_modes(),
            threshold=self._settings.consensus_content_threshold,
            max_fallbacks=self._settings.consensus_max_fallbacks,
        )
        return ProbeSummary(elements=elements, dom_rules=dom_rules, sample_counts=counts)

    # ── Phases 3 and 4 ───────────────────────────────────────────────────────

    async def detect_features(
        self, job: _Job, samples: Samples
    ) -> tuple[dict[PageType, list[Feature]], dict[PageType, UrlInteractionAnalysis], Optional[ProbeSummary]]:
        if job.vision is not None:
            result = await FeatureExtractor(job.driver, self._navigator, job.vision).extract(samples, job.log)
            return result.features, result.url_interactions, None

        job.log("skipping VLM feature detection (no vision credential), using DOM probing")
        probe = await self.probe_samples(job, samples)
        return convert_elements_to_features(probe.elements), {}, probe

    async def build_interaction_recipes(
        self,
        job: _Job,
        features: dict[PageType, list[Feature]],
        url_interactions: dict[PageType, UrlInteractionAnalysis],
        samples: Samples,
    ) -> tuple[dict[str, InteractionRecipe], dict[PageType, list[Feature]]]:
        recipes, linked = build_recipes(features, url_interactions, job.log)
        if recipes:
            job.log("validating recipes against live site...")
            await validate_recipes(job.driver, self._navigator, recipes, samples, job.log)
        return recipes, linked

    # ── Phase 5 ──────────────────────────────────────────────────────────────

    async def assemble(
        self,
        job: _Job,
        *,
        recon: ReconResult,
        registry: RegistryBuildResult,
        probe: ProbeSummary,
        features: dict[PageType, list[Feature]],
        recipes: dict[str, InteractionRecipe],
        started_ms: int,
    ) -> SiteConfig:
        s = self._settings
        elements = probe.elements
        coverage = calculate_coverage(elements, threshold=s.coverage_confidence_threshold)
        job.log(f"element coverage: {coverage.overall_pct}%")

        config = SiteConfig(
            domain=job.domain,
            version=s.site_config_version,
            crawled_at=utc_now_iso(),
            crawl_stats=CrawlStats(
                pages_visited=probe.pages_visited,
                product_samples=probe.sample_counts.get(PageType.PRODUCT, 0),
                category_samples=probe.sample_counts.get(PageType.CATEGORY, 0),
                duration_ms=elapsed_ms(started_ms),
                products_registered=len(registry.registry.products),
                validated_product_urls=registry.validated_count,
            ),
            page_types=merge_page_type_rules(probe.dom_rules, registry.registry, recon.visual),
            elements=elements,
            navigation_graph=build_nav_graph(recon.main_nav),
            product_schema=build_product_schema(elements),
            listing_schema=build_listing_schema(elements),
            main_nav=recon.main_nav,
            coverage=coverage,
            url_registry=registry.registry,
            features=features,
            interaction_recipes=recipes,
            meta=build_meta(
                job.domain,
                recon.main_nav,
                elements,
                recon.home_soup,
                recon.home_html,
                default_currency=s.default_currency,
                default_locale=s.default_locale,
            ),
        )

        overlay = await self._configs.get_overlay(job.domain)
        if overlay:
            job.log(f"applying manual overlay ({len(overlay)} entries)")
            config = merge_overlay(config, overlay, coverage_threshold=s.coverage_confidence_threshold)
        return config

    # ── Entry point ──────────────────────────────────────────────────────────

    async def run(self, job_id: str, root_url: str, vision_api_key: Optional[str] = None) -> SiteConfig:
        with bind_job_context(job_id, domain_of(root_url)):
            return await self._run(job_id, root_url, vision_api_key)

    async def _run(self, job_id: str, root_url: str, vision_api_key: Optional[str]) -> SiteConfig:
        record = await self._jobs.get(job_id)
        if record is None:
            record = new_job(root_url, job_id)
            await self._jobs.create(record)

        started_ms = current_time_ms()
        log = CrawlLog(job_id)
        vision = self._vision_factory(vision_api_key)
        job = _Job(
            record=record,
            log=log,
            driver=self._driver_factory(),
            vision=vision,
            origin=origin_of(root_url),
            domain=domain_of(root_url),
        )

        log(f"=== crawl start: {root_url} ===")
        log(f"VLM mode: {'vision' if vision is not None else 'DOM-only (no credential)'}")
        await self._flush(job, status=JobStatus.RUNNING)

        try:
            log(f"-- phase: {CrawlPhase.RECONNAISSANCE.value} --")
            recon = await self.reconnaissance(job)
            await self._flush(job)

            log(f"-- phase: {CrawlPhase.URL_REGISTRY.value} --")
            recon.main_nav, registry = await self.build_registry(job, recon)
            await self._flush(job)

            log(f"-- phase: {CrawlPhase.FEATURE_DETECTION.value} --")
            features, url_interactions, probe = await self.detect_features(job, recon.samples)
            await self._flush(job)

            log(f"-- phase: {CrawlPhase.INTERACTION_RECIPES.value} --")
            recipes, features = await self.build_interaction_recipes(job, features, url_interactions, recon.samples)
            await self._flush(job)

            log(f"-- phase: {CrawlPhase.ASSEMBLY.value} --")
            if probe is None:
                probe = await self.probe_samples(job, recon.samples)
            else:
                log("reusing DOM probe results from feature detection")
            config = await self.assemble(
                job,
                recon=recon,
                registry=registry,
                probe=probe,
                features=features,
                recipes=recipes,
                started_ms=started_ms,
            )
            await self._configs.save(config)

            log(f"=== crawl done in {config.crawl_stats.duration_ms / 1000:.1f}s ===")
            log(f"  elements mapped:     {len(config.elements)}")
            log(f"  coverage:            {config.coverage.overall_pct}%")
            log(f"  products registered: {len(config.url_registry.products)}")
            log(f"  features detected:   {sum(len(v) for v in config.features.values())}")
            log(f"  recipes generated:   {len(config.interaction_recipes)}")
            job.record = job.record.model_copy(update={"status": JobStatus.DONE, "completed_at": utc_now_iso()})
            return config
        except Exception as e:
            log(f"crawl failed: {e}")
            logger.error("crawl_failed", job_id=job_id, error=str(e), error_type=type(e).__name__)
            job.record = job.record.model_copy(
                update={"status": JobStatus.FAILED, "error": str(e) or type(e).__name__, "completed_at": utc_now_iso()}
            )
            raise
        finally:
            try:
                await job.driver.close()
            except Exception as e:
                logger.warning("driver_close_failed", job_id=job_id, error=str(e))
            try:
                await self._flush(job)
            except CrawlerDomainError as e:
                logger.error("job_flush_failed", job_id=job_id, error=str(e))
