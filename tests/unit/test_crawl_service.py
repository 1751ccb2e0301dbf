from __future__ import annotations

import asyncio
import json

import pytest

from fakes import ORIGIN, FakeDriver, NoSitemapDiscoverer, ScriptedVision, fast_navigator, shop_site

from siteintel.config.settings import CrawlerSettings
from siteintel.domain.errors import InvalidURLError, StorageError, VisionServiceError
from siteintel.domain.models import JobStatus, PageType
from siteintel.models.site_config import SiteConfig, UrlParamStep
from siteintel.services.crawl_service import CrawlPipeline
from siteintel.storage.job_store import InMemoryJobStore, InMemorySiteConfigStore
from siteintel.vision.runtime import VisionRequest, VisionRuntime

ROOT = f"{ORIGIN}/"


class _FailingConfigStore(InMemorySiteConfigStore):
    async def save(self, config: SiteConfig) -> None:
        raise StorageError("disk full")


def _pipeline(driver: FakeDriver, *, configs=None, vision=None) -> tuple[CrawlPipeline, InMemoryJobStore, InMemorySiteConfigStore]:
    jobs = InMemoryJobStore()
    configs = configs or InMemorySiteConfigStore()
    pipeline = CrawlPipeline(
        jobs=jobs,
        configs=configs,
        navigator=fast_navigator(),
        discoverer=NoSitemapDiscoverer(),
        driver_factory=lambda: driver,
        vision_factory=lambda api_key: vision if api_key else None,
        settings=CrawlerSettings(),
    )
    return pipeline, jobs, configs


def test_dom_only_crawl_completes_without_vision_credential() -> None:
    driver = FakeDriver(shop_site())
    pipeline, jobs, configs = _pipeline(driver)

    async def scenario():
        job = await pipeline.create_job(ROOT)
        config = await pipeline.run(job.job_id, ROOT)
        return job.job_id, config, await jobs.get(job.job_id), await configs.get("shop.example.com")

    job_id, config, record, stored = asyncio.run(scenario())

    assert record is not None
    assert record.status is JobStatus.DONE
    assert record.completed_at is not None
    assert record.error is None
    assert any("DOM-only" in line for line in record.logs)
    assert any(line.startswith("=== crawl done") for line in record.logs)

    assert config.elements
    for intent in ("productTitle", "price", "addToCart", "productCards", "searchBar"):
        assert intent in config.elements, intent
    assert config.elements["price"].example_value == "$119.00"
    assert stored == config

    assert config.crawl_stats.pages_visited == 7
    assert config.crawl_stats.product_samples == 3
    assert config.crawl_stats.category_samples == 3
    assert config.crawl_stats.products_registered == 15
    assert config.crawl_stats.validated_product_urls == 15

    assert {PageType.HOME, PageType.CATEGORY, PageType.PRODUCT} <= set(config.page_types)
    assert config.page_types[PageType.PRODUCT].json_ld_type == "Product"
    assert config.product_schema.name == config.elements["productTitle"].selectors[0]
    assert len(config.main_nav) == 5
    assert config.meta.currency == "USD"
    assert config.meta.locale == "en-US"
    assert config.meta.platform == "shopify"
    assert config.meta.primary_categories[0] == "Mattresses"

    assert PageType.PRODUCT in config.features
    assert all(f.recipe_id in config.interaction_recipes for fs in config.features.values() for f in fs)

    assert driver.close_calls == 1
    assert driver.pages_opened == driver.pages_closed

    # the artifact is plain camelCase JSON
    body = json.loads(json.dumps(config.to_json_dict()))
    assert "crawlStats" in body and "urlRegistry" in body
    assert SiteConfig.model_validate(body) == config


def test_vision_crawl_builds_url_param_recipes() -> None:
    vision = ScriptedVision(
        classify='{"pageType": "category", "confidence": 60}',
        features=json.dumps(
            {
                "features": [
                    {"id": "price_filter", "name": "Price", "type": "filter", "interactionMethod": "click"},
                    {"id": "search", "name": "Search", "type": "search", "interactionMethod": "input"},
                ]
            }
        ),
        interactions=json.dumps(
            {"urlPatterns": {"priceFilter": {"param": "price", "format": "[min,max]"}}, "usesUrlFiltering": True}
        ),
    )
    driver = FakeDriver(shop_site())
    pipeline, jobs, _configs = _pipeline(driver, vision=vision)

    async def scenario():
        job = await pipeline.create_job(ROOT)
        config = await pipeline.run(job.job_id, ROOT, vision_api_key="test-key")
        return config, await jobs.get(job.job_id)

    config, record = asyncio.run(scenario())

    assert record is not None and record.status is JobStatus.DONE
    recipe = config.interaction_recipes["category_price_filter"]
    assert recipe.steps == [UrlParamStep(key="price", value="[{{min}},{{max}}]", template="price=[{{min}},{{max}}]")]
    price_filter = next(f for f in config.features[PageType.CATEGORY] if f.id == "price_filter")
    assert price_filter.recipe_id == "category_price_filter"
    assert price_filter.selector == '[class*="filter-sidebar"]'
    assert config.elements
    assert any("Current URL:" in p for p in vision.prompts)


def test_unreachable_home_still_finishes() -> None:
    driver = FakeDriver(shop_site(), failing=[ROOT])
    pipeline, jobs, _configs = _pipeline(driver)

    async def scenario():
        job = await pipeline.create_job(ROOT)
        config = await pipeline.run(job.job_id, ROOT)
        return config, await jobs.get(job.job_id)

    config, record = asyncio.run(scenario())

    assert record is not None and record.status is JobStatus.DONE
    assert any("home page unreachable" in line for line in record.logs)
    assert config.elements == {}
    assert config.page_types[PageType.HOME].url_pattern == r"^\/?$"
    assert driver.close_calls == 1


def test_failed_persistence_marks_job_failed() -> None:
    driver = FakeDriver(shop_site())
    pipeline, jobs, _configs = _pipeline(driver, configs=_FailingConfigStore())

    async def scenario():
        job = await pipeline.create_job(ROOT)
        with pytest.raises(StorageError):
            await pipeline.run(job.job_id, ROOT)
        return await jobs.get(job.job_id)

    record = asyncio.run(scenario())

    assert record is not None
    assert record.status is JobStatus.FAILED
    assert record.error == "disk full"
    assert record.logs[-1] == "crawl failed: disk full"
    assert driver.close_calls == 1


def test_run_creates_missing_job_record() -> None:
    driver = FakeDriver(shop_site())
    pipeline, jobs, _configs = _pipeline(driver)

    asyncio.run(pipeline.run("external-id", ROOT))

    record = asyncio.run(jobs.get("external-id"))
    assert record is not None
    assert record.domain == "shop.example.com"
    assert record.status is JobStatus.DONE


def test_create_job_rejects_relative_url() -> None:
    pipeline, _jobs, _configs = _pipeline(FakeDriver({}))
    with pytest.raises(InvalidURLError):
        asyncio.run(pipeline.create_job("/not/absolute"))


class _UnavailableVision(VisionRuntime):
    async def generate(self, req: VisionRequest) -> str:
        raise VisionServiceError("gemini_invalid_response", detail="Expecting value: line 1 column 1 (char 0)")


def test_vision_outage_degrades_instead_of_failing_the_job() -> None:
    driver = FakeDriver(shop_site())
    pipeline, jobs, _configs = _pipeline(driver, vision=_UnavailableVision())

    async def scenario():
        job = await pipeline.create_job(ROOT)
        config = await pipeline.run(job.job_id, ROOT, vision_api_key="k")
        return config, await jobs.get(job.job_id)

    config, record = asyncio.run(scenario())

    assert record is not None and record.status is JobStatus.DONE
    assert any(line.startswith("VLM classification failed for") for line in record.logs)
    assert any("error extracting" in line for line in record.logs)
    assert "price" in config.elements
    assert driver.close_calls == 1
