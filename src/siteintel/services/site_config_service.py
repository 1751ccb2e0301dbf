"""Site config lookup and manual overlays."""

from __future__ import annotations

from typing import Optional

from ..config.settings import get_settings
from ..domain.errors import ConfigNotFoundError, InvalidInputError
from ..models.site_config import SelectorEntry, SiteConfig
from ..observability.logger import get_logger
from ..storage.job_store import SiteConfigStore, config_key
from .assembly import merge_overlay

logger = get_logger(__name__)


class SiteConfigService:
    def __init__(self, configs: SiteConfigStore, *, coverage_threshold: Optional[int] = None):
        self._configs = configs
        self._coverage_threshold = (
            coverage_threshold if coverage_threshold is not None else get_settings().coverage_confidence_threshold
        )

    async def get_config(self, domain: str) -> SiteConfig:
        config = await self._configs.get(domain)
        if config is None:
            raise ConfigNotFoundError(f"no config found for domain: {config_key(domain)}")
        return config

    async def list_configs(self) -> list[SiteConfig]:
        configs = []
        for domain in await self._configs.list_domains():
            config = await self._configs.get(domain)
            if config is not None:
                configs.append(config)
        return configs

    async def replace_config(self, domain: str, config: SiteConfig) -> SiteConfig:
        """Store a hand-edited config under ``domain``; the body's own domain is overridden."""
        key = config_key(domain)
        if not key:
            raise InvalidInputError("domain is required")
        config = config.model_copy(update={"domain": key})
        await self._configs.save(config)
        logger.info("site_config_replaced", domain=key)
        return config

    async def apply_overlay(self, domain: str, overlay: dict[str, SelectorEntry]) -> Optional[SiteConfig]:
        """Persist ``overlay`` and merge it into the stored config, if there is one.

        The overlay is kept either way so the next crawl of the domain picks it up.
        """
        key = config_key(domain)
        if not key:
            raise InvalidInputError("domain is required")
        await self._configs.save_overlay(key, overlay)

        config = await self._configs.get(key)
        if config is None:
            logger.info("overlay_stored_without_config", domain=key, intents=len(overlay))
            return None
        merged = merge_overlay(config, overlay, coverage_threshold=self._coverage_threshold)
        await self._configs.save(merged)
        logger.info("overlay_applied", domain=key, intents=len(overlay), coverage=merged.coverage.overall_pct)
        return merged
