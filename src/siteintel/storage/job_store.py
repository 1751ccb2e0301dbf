"""Job and site-config store interfaces.

The pipeline only sees these abstractions. ``update`` replaces the stored job
as a whole, so a reader never observes a half-written log list.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from ..domain.errors import JobNotFoundError
from ..models.site_config import CrawlJob, SelectorEntry, SiteConfig
from ..utils.validators import strip_www

Overlay = dict[str, SelectorEntry]


def config_key(domain: str) -> str:
    return strip_www(domain.strip().lower())


class JobStore(ABC):
    @abstractmethod
    async def create(self, job: CrawlJob) -> None: ...

    @abstractmethod
    async def get(self, job_id: str) -> Optional[CrawlJob]: ...

    @abstractmethod
    async def update(self, job: CrawlJob) -> None:
        """Whole-replace an existing job; raises ``JobNotFoundError`` for unknown ids."""

    @abstractmethod
    async def list(self, limit: int = 50) -> list[CrawlJob]:
        """Jobs, newest first."""


class SiteConfigStore(ABC):
    @abstractmethod
    async def save(self, config: SiteConfig) -> None: ...

    @abstractmethod
    async def get(self, domain: str) -> Optional[SiteConfig]: ...

    @abstractmethod
    async def list_domains(self) -> list[str]: ...

    @abstractmethod
    async def save_overlay(self, domain: str, overlay: Overlay) -> None: ...

    @abstractmethod
    async def get_overlay(self, domain: str) -> Overlay: ...


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, CrawlJob] = {}
        self._lock = asyncio.Lock()

    async def create(self, job: CrawlJob) -> None:
        async with self._lock:
            self._jobs[job.job_id] = job.model_copy(deep=True)

    async def get(self, job_id: str) -> Optional[CrawlJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    async def update(self, job: CrawlJob) -> None:
        async with self._lock:
            if job.job_id not in self._jobs:
                raise JobNotFoundError("job not found", detail=job.job_id)
            self._jobs[job.job_id] = job.model_copy(deep=True)

    async def list(self, limit: int = 50) -> list[CrawlJob]:
        jobs = sorted(self._jobs.values(), key=lambda j: j.started_at, reverse=True)
        return [j.model_copy(deep=True) for j in jobs[:limit]]


class InMemorySiteConfigStore(SiteConfigStore):
    def __init__(self) -> None:
        self._configs: dict[str, SiteConfig] = {}
        self._overlays: dict[str, Overlay] = {}

    async def save(self, config: SiteConfig) -> None:
        self._configs[config_key(config.domain)] = config.model_copy(deep=True)

    async def get(self, domain: str) -> Optional[SiteConfig]:
        config = self._configs.get(config_key(domain))
        return config.model_copy(deep=True) if config is not None else None

    async def list_domains(self) -> list[str]:
        return sorted(self._configs)

    async def save_overlay(self, domain: str, overlay: Overlay) -> None:
        self._overlays[config_key(domain)] = {k: v.model_copy() for k, v in overlay.items()}

    async def get_overlay(self, domain: str) -> Overlay:
        return {k: v.model_copy() for k, v in self._overlays.get(config_key(domain), {}).items()}
