"""SQL-backed job and site-config stores."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..domain.errors import JobNotFoundError, StorageError
from ..domain.models import JobStatus
from ..models.database import CrawlJobRecord, SiteConfigOverlayRecord, SiteConfigRecord
from ..models.site_config import CrawlJob, SelectorEntry, SiteConfig
from ..observability.logger import get_logger
from .job_store import JobStore, Overlay, SiteConfigStore, config_key

logger = get_logger(__name__)

_overlay_adapter = TypeAdapter(dict[str, SelectorEntry])


def _to_job(rec: CrawlJobRecord) -> CrawlJob:
    return CrawlJob(
        job_id=rec.job_id,
        domain=rec.domain,
        url=rec.url,
        status=JobStatus(rec.status),
        started_at=rec.started_at,
        completed_at=rec.completed_at,
        error=rec.error,
        logs=json.loads(rec.logs_json or "[]"),
    )


def _apply(rec: CrawlJobRecord, job: CrawlJob) -> None:
    rec.domain = job.domain
    rec.url = job.url
    rec.status = job.status.value
    rec.started_at = job.started_at
    rec.completed_at = job.completed_at
    rec.error = job.error
    rec.logs_json = json.dumps(job.logs, ensure_ascii=False)
    rec.updated_at = datetime.utcnow()


class SqlJobStore(JobStore):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def create(self, job: CrawlJob) -> None:
        try:
            async with self._session_factory() as session:
                rec = CrawlJobRecord(job_id=job.job_id)
                _apply(rec, job)
                session.add(rec)
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError("failed to create job", detail=str(e)) from e

    async def get(self, job_id: str) -> Optional[CrawlJob]:
        async with self._session_factory() as session:
            rec = await session.get(CrawlJobRecord, job_id)
            return _to_job(rec) if rec is not None else None

    async def update(self, job: CrawlJob) -> None:
        try:
            async with self._session_factory() as session:
                rec = await session.get(CrawlJobRecord, job.job_id)
                if rec is None:
                    raise JobNotFoundError("job not found", detail=job.job_id)
                _apply(rec, job)
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError("failed to update job", detail=str(e)) from e

    async def list(self, limit: int = 50) -> list[CrawlJob]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CrawlJobRecord).order_by(CrawlJobRecord.started_at.desc()).limit(limit)
            )
            return [_to_job(rec) for rec in result.scalars().all()]


class SqlSiteConfigStore(SiteConfigStore):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def save(self, config: SiteConfig) -> None:
        key = config_key(config.domain)
        payload = config.model_dump_json(by_alias=True, exclude_none=True)
        try:
            async with self._session_factory() as session:
                rec = await session.get(SiteConfigRecord, key)
                if rec is None:
                    rec = SiteConfigRecord(domain=key)
                    session.add(rec)
                rec.version = config.version
                rec.crawled_at = config.crawled_at
                rec.config_json = payload
                rec.updated_at = datetime.utcnow()
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError("failed to save site config", detail=str(e)) from e
        logger.info("site_config_saved", domain=key, bytes=len(payload))

    async def get(self, domain: str) -> Optional[SiteConfig]:
        async with self._session_factory() as session:
            rec = await session.get(SiteConfigRecord, config_key(domain))
            if rec is None:
                return None
            return SiteConfig.model_validate_json(rec.config_json)

    async def list_domains(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(SiteConfigRecord.domain).order_by(SiteConfigRecord.domain))
            return list(result.scalars().all())

    async def save_overlay(self, domain: str, overlay: Overlay) -> None:
        key = config_key(domain)
        payload = _overlay_adapter.dump_json(overlay, by_alias=True, exclude_none=True).decode("utf-8")
        try:
            async with self._session_factory() as session:
                rec = await session.get(SiteConfigOverlayRecord, key)
                if rec is None:
                    rec = SiteConfigOverlayRecord(domain=key)
                    session.add(rec)
                rec.elements_json = payload
                rec.updated_at = datetime.utcnow()
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError("failed to save overlay", detail=str(e)) from e

    async def get_overlay(self, domain: str) -> Overlay:
        async with self._session_factory() as session:
            rec = await session.get(SiteConfigOverlayRecord, config_key(domain))
            if rec is None:
                return {}
            return _overlay_adapter.validate_json(rec.elements_json)
