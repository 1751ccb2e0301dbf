from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from siteintel.domain.models import JobStatus, PageType
from siteintel.http_app import app
from siteintel.lifespan import app_state
from siteintel.models.site_config import CrawlJob, PageTypeRule, SelectorEntry, SiteConfig, SiteMeta
from siteintel.services.crawl_service import new_job
from siteintel.services.site_config_service import SiteConfigService
from siteintel.storage.job_store import InMemoryJobStore, InMemorySiteConfigStore


class _RecordingPipeline:
    def __init__(self, jobs: InMemoryJobStore):
        self.jobs = jobs
        self.runs: list[tuple[str, str, str | None]] = []

    async def create_job(self, url: str) -> CrawlJob:
        job = new_job(url)
        await self.jobs.create(job)
        return job

    async def run(self, job_id: str, root_url: str, vision_api_key: str | None = None) -> None:
        self.runs.append((job_id, root_url, vision_api_key))


def _config(domain: str = "shop.example.com") -> SiteConfig:
    return SiteConfig(
        domain=domain,
        version="3.0.0",
        crawled_at="2026-01-01T00:00:00Z",
        page_types={PageType.HOME: PageTypeRule(url_pattern=r"^\/?$", label="Home", confidence=95)},
        elements={"productTitle": SelectorEntry(selectors=["h1"], confidence=90, sample_count=3)},
        meta=SiteMeta(brand_name="Shop", currency="USD", locale="en-US"),
    )


def _wire() -> tuple[InMemoryJobStore, InMemorySiteConfigStore, _RecordingPipeline]:
    jobs = InMemoryJobStore()
    configs = InMemorySiteConfigStore()
    pipeline = _RecordingPipeline(jobs)
    app_state.clear()
    app_state.update(
        jobs=jobs,
        site_configs=SiteConfigService(configs, coverage_threshold=50),
        pipeline=pipeline,
        tasks=set(),
    )
    return jobs, configs, pipeline


def test_healthz() -> None:
    assert TestClient(app).get("/healthz").json() == {"status": "ok"}


def test_start_crawl_returns_pending_job() -> None:
    jobs, _configs, _pipeline = _wire()

    with TestClient(app) as client:
        resp = client.post("/api/v1/crawl", json={"url": "https://www.shop.example.com/", "visionApiKey": "k"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["domain"] == "shop.example.com"
        assert body["status"] == "pending"
        assert body["visionEnabled"] is True

        listed = client.get("/api/v1/crawl/jobs").json()
        assert [j["jobId"] for j in listed] == [body["jobId"]]

    assert asyncio.run(jobs.get(body["jobId"])) is not None


def test_start_crawl_rejects_non_http_url() -> None:
    _wire()
    resp = TestClient(app).post("/api/v1/crawl", json={"url": "ftp://shop.example.com"})
    assert resp.status_code == 422


def test_unknown_job_is_404() -> None:
    _wire()
    resp = TestClient(app).get("/api/v1/crawl/jobs/nope")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "JOB_NOT_FOUND"


def test_stream_replays_logs_then_done() -> None:
    jobs, _configs, _pipeline = _wire()
    job = new_job("https://shop.example.com/").model_copy(
        update={"status": JobStatus.DONE, "logs": ["phase one", "phase two"]}
    )
    asyncio.run(jobs.create(job))

    resp = TestClient(app).get(f"/api/v1/crawl/jobs/{job.job_id}/stream")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    events = [line for line in resp.text.splitlines() if line.startswith("data: ")]
    assert events == [
        'data: {"log": "phase one"}',
        'data: {"log": "phase two"}',
        'data: {"status": "done"}',
        'data: {"done": true, "status": "done"}',
    ]


def test_config_lookup_is_cacheable() -> None:
    _jobs, configs, _pipeline = _wire()
    asyncio.run(configs.save(_config()))
    client = TestClient(app)

    resp = client.get("/api/v1/config/www.shop.example.com")
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "public, max-age=86400"
    assert resp.json()["elements"]["productTitle"]["selectors"] == ["h1"]

    summaries = client.get("/api/v1/config").json()
    assert summaries[0]["domain"] == "shop.example.com"
    assert summaries[0]["elementCount"] == 1

    missing = client.get("/api/v1/config/unknown.example.org")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "CONFIG_NOT_FOUND"


def test_replace_config_validates_body() -> None:
    _jobs, configs, _pipeline = _wire()
    client = TestClient(app)

    ok = client.put("/api/v1/config/shop.example.com", json=_config("typo.example.com").to_json_dict())
    assert ok.json() == {"ok": True, "domain": "shop.example.com"}
    assert asyncio.run(configs.get("shop.example.com")) is not None

    bad = client.put("/api/v1/config/shop.example.com", json={"domain": "shop.example.com"})
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "INVALID_INPUT"


def test_overlay_applied_to_existing_config() -> None:
    _jobs, configs, _pipeline = _wire()
    asyncio.run(configs.save(_config()))
    overlay = {"elements": {"price": {"selectors": [".amount"], "confidence": 100, "exampleValue": "$10"}}}

    resp = TestClient(app).put("/api/v1/config/shop.example.com/overlay", json=overlay)

    assert resp.json() == {"domain": "shop.example.com", "intents": ["price"], "applied": True}
    stored = asyncio.run(configs.get("shop.example.com"))
    assert stored is not None
    assert stored.product_schema.price == ".amount"


def test_missing_services_are_503() -> None:
    app_state.clear()
    assert TestClient(app).get("/api/v1/crawl/jobs").status_code == 503
