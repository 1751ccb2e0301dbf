"""HTTP request/response models."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator

from ..domain.models import JobStatus
from .site_config import CamelModel, SelectorEntry, SiteConfig


class CrawlRequest(CamelModel):
    url: str = Field(..., min_length=1)
    # per-request credential for the optional vision classifier
    vision_api_key: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("url must start with http:// or https://")
        return v


class CrawlStarted(CamelModel):
    job_id: str
    domain: str
    status: JobStatus
    vision_enabled: bool


class OverlayRequest(CamelModel):
    """Hand-verified selector entries keyed by intent."""

    elements: dict[str, SelectorEntry] = Field(default_factory=dict)


class OverlayResult(CamelModel):
    domain: str
    intents: list[str]
    applied: bool


class ConfigSummary(CamelModel):
    domain: str
    version: str
    crawled_at: str
    element_count: int
    nav_link_count: int
    product_count: int
    feature_count: int
    recipe_count: int
    coverage_pct: int

    @classmethod
    def of(cls, config: SiteConfig) -> "ConfigSummary":
        return cls(
            domain=config.domain,
            version=config.version,
            crawled_at=config.crawled_at,
            element_count=len(config.elements),
            nav_link_count=len(config.main_nav),
            product_count=len(config.url_registry.products),
            feature_count=sum(len(v) for v in config.features.values()),
            recipe_count=len(config.interaction_recipes),
            coverage_pct=config.coverage.overall_pct,
        )
