"""FastAPI app: crawl jobs, live job logs and site configs."""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from .config.settings import get_settings
from .domain.errors import (
    ConfigNotFoundError,
    CrawlerDomainError,
    InvalidInputError,
    InvalidURLError,
    JobNotFoundError,
)
from .lifespan import app_state
from .models.requests import ConfigSummary, CrawlRequest, CrawlStarted, OverlayRequest, OverlayResult
from .models.site_config import SiteConfig
from .observability.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(title="Site Intelligence Crawler", version="3.0.0")

CONFIG_CACHE_CONTROL = "public, max-age=86400"


def _service(name: str):
    svc = app_state.get(name)
    if svc is None:
        raise HTTPException(status_code=503, detail=f"{name}_unavailable")
    return svc


def _http_error(e: CrawlerDomainError) -> HTTPException:
    if isinstance(e, (InvalidInputError, InvalidURLError)):
        status = 400
    elif isinstance(e, (JobNotFoundError, ConfigNotFoundError)):
        status = 404
    else:
        status = 500
    info = getattr(e, "info", None)
    detail = {"code": info.code, "message": info.message, "detail": info.detail} if info else str(e)
    return HTTPException(status_code=status, detail=detail)


def _sse(payload: dict) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


async def _run_crawl(pipeline, job_id: str, url: str, api_key: str | None) -> None:
    try:
        await pipeline.run(job_id, url, api_key)
    except Exception as e:
        # the pipeline already recorded the failure on the job
        logger.error("crawl_task_failed", job_id=job_id, error=str(e))


@app.post("/api/v1/crawl")
async def start_crawl(payload: CrawlRequest):
    pipeline = _service("pipeline")
    try:
        job = await pipeline.create_job(payload.url)
    except CrawlerDomainError as e:
        raise _http_error(e) from e

    api_key = payload.vision_api_key or get_settings().vision_api_key
    task = asyncio.create_task(_run_crawl(pipeline, job.job_id, job.url, api_key))
    tasks: set = app_state.setdefault("tasks", set())
    tasks.add(task)
    task.add_done_callback(tasks.discard)

    return CrawlStarted(
        job_id=job.job_id, domain=job.domain, status=job.status, vision_enabled=bool(api_key)
    ).to_json_dict()


@app.get("/api/v1/crawl/jobs")
async def list_jobs():
    jobs = _service("jobs")
    return [j.to_json_dict() for j in await jobs.list()]


@app.get("/api/v1/crawl/jobs/{job_id}")
async def get_job(job_id: str):
    job = await _service("jobs").get(job_id)
    if job is None:
        raise _http_error(JobNotFoundError("job not found", detail=job_id))
    return job.to_json_dict()


@app.get("/api/v1/crawl/jobs/{job_id}/stream")
async def stream_job(job_id: str) -> StreamingResponse:
    jobs = _service("jobs")
    if await jobs.get(job_id) is None:
        raise _http_error(JobNotFoundError("job not found", detail=job_id))
    poll_s = get_settings().job_stream_poll_ms / 1000

    async def event_stream() -> AsyncIterator[bytes]:
        sent = 0
        while True:
            current = await jobs.get(job_id)
            if current is None:
                return
            for line in current.logs[sent:]:
                yield _sse({"log": line})
            sent = len(current.logs)
            yield _sse({"status": current.status.value})
            if current.status.is_terminal:
                yield _sse({"done": True, "status": current.status.value})
                return
            await asyncio.sleep(poll_s)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/api/v1/config")
async def list_configs():
    configs = await _service("site_configs").list_configs()
    return [ConfigSummary.of(c).to_json_dict() for c in configs]


@app.get("/api/v1/config/{domain}")
async def get_config(domain: str):
    try:
        config = await _service("site_configs").get_config(domain)
    except CrawlerDomainError as e:
        raise _http_error(e) from e
    return JSONResponse(content=config.to_json_dict(), headers={"Cache-Control": CONFIG_CACHE_CONTROL})


@app.put("/api/v1/config/{domain}")
async def replace_config(domain: str, payload: dict):
    try:
        config = SiteConfig.model_validate(payload)
    except ValidationError as e:
        raise _http_error(InvalidInputError("invalid SiteConfig body", detail=str(e))) from e
    try:
        saved = await _service("site_configs").replace_config(domain, config)
    except CrawlerDomainError as e:
        raise _http_error(e) from e
    return {"ok": True, "domain": saved.domain}


@app.put("/api/v1/config/{domain}/overlay")
async def put_overlay(domain: str, payload: OverlayRequest):
    try:
        merged = await _service("site_configs").apply_overlay(domain, payload.elements)
    except CrawlerDomainError as e:
        raise _http_error(e) from e
    return OverlayResult(
        domain=merged.domain if merged is not None else domain,
        intents=sorted(payload.elements),
        applied=merged is not None,
    ).to_json_dict()
