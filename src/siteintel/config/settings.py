"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class CrawlerSettings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service
    service_name: str = "site-intelligence-crawler"

    # FastAPI (job status + config endpoints)
    http_enable: bool = True
    http_host: str = "127.0.0.1"
    http_port: int = 8000
    job_stream_poll_ms: int = 500

    # Database (async SQLAlchemy URL)
    database_url: str = "sqlite+aiosqlite:///./data/siteintel.db"

    # Browser (initialization-time stealth concerns live here, not in the pipeline)
    browser_headless: bool = True
    browser_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1440
    viewport_height: int = 900
    browser_locale: str = "en-US"
    browser_timezone: str = "UTC"

    # Navigation
    navigation_timeout_ms: int = 30000
    navigation_idle_timeout_ms: int = 10000
    challenge_wait_ms: int = 15000
    navigation_max_attempts: int = 3
    navigation_backoff_ms: int = 2000
    validation_timeout_ms: int = 10000

    # Rate limiting (optional)
    enable_rate_limiting: bool = False
    rate_limit_per_domain_rps: float = 2.0

    # robots.txt (politeness)
    respect_robots_txt: bool = True
    robots_cache_ttl_seconds: int = 3600
    robots_timeout_seconds: int = 10

    # URL discovery
    sitemap_timeout_seconds: int = 10
    sitemap_max_children: int = 10
    sitemap_user_agent: str = "Mozilla/5.0 (compatible; SiteIntelCrawler/3.0)"
    samples_per_type: int = 3

    # URL registry
    registry_max_categories: int = 20
    registry_max_products_per_category: int = 200
    registry_max_pagination_pages: int = 5
    registry_validation_sample: int = 20

    # Consensus scoring. Empirical constants, kept tunable.
    consensus_content_threshold: float = 1 / 3
    consensus_max_fallbacks: int = 5
    coverage_confidence_threshold: int = 50

    # Vision classifier (optional; only used when a credential is supplied per crawl)
    vision_provider: str = "gemini"  # "gemini" | "openai"
    vision_api_key: str | None = None  # server-side fallback when a request carries none
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    openai_base_url: str | None = None
    openai_vision_model: str = "gpt-4o"
    vision_timeout_seconds: int = 60
    vision_max_tokens: int = 4096
    vision_reclassify_confidence: int = 80

    # Output
    site_config_version: str = "3.0.0"
    default_currency: str = "USD"
    default_locale: str = "en-US"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # "json" | "console"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate(self) -> None:
        if self.job_stream_poll_ms <= 0:
            raise ValueError("job_stream_poll_ms must be > 0")
        if self.http_port <= 0:
            raise ValueError("http_port must be > 0")
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ValueError("viewport dimensions must be > 0")
        if self.navigation_timeout_ms <= 0:
            raise ValueError("navigation_timeout_ms must be > 0")
        if self.navigation_idle_timeout_ms < 0:
            raise ValueError("navigation_idle_timeout_ms must be >= 0")
        if self.challenge_wait_ms < 0:
            raise ValueError("challenge_wait_ms must be >= 0")
        if self.navigation_max_attempts <= 0:
            raise ValueError("navigation_max_attempts must be > 0")
        if self.navigation_backoff_ms < 0:
            raise ValueError("navigation_backoff_ms must be >= 0")
        if self.validation_timeout_ms <= 0:
            raise ValueError("validation_timeout_ms must be > 0")
        if self.robots_cache_ttl_seconds <= 0:
            raise ValueError("robots_cache_ttl_seconds must be > 0")
        if self.robots_timeout_seconds <= 0:
            raise ValueError("robots_timeout_seconds must be > 0")
        if self.sitemap_timeout_seconds <= 0:
            raise ValueError("sitemap_timeout_seconds must be > 0")
        if self.sitemap_max_children <= 0:
            raise ValueError("sitemap_max_children must be > 0")
        if self.samples_per_type <= 0:
            raise ValueError("samples_per_type must be > 0")
        if self.registry_max_categories <= 0:
            raise ValueError("registry_max_categories must be > 0")
        if self.registry_max_products_per_category <= 0:
            raise ValueError("registry_max_products_per_category must be > 0")
        if self.registry_max_pagination_pages < 0:
            raise ValueError("registry_max_pagination_pages must be >= 0")
        if self.registry_validation_sample < 0:
            raise ValueError("registry_validation_sample must be >= 0")
        if not 0.0 <= self.consensus_content_threshold <= 1.0:
            raise ValueError("consensus_content_threshold must be within [0, 1]")
        if self.consensus_max_fallbacks <= 0:
            raise ValueError("consensus_max_fallbacks must be > 0")
        if not 0 <= self.coverage_confidence_threshold <= 100:
            raise ValueError("coverage_confidence_threshold must be within [0, 100]")
        if self.vision_provider not in ("gemini", "openai"):
            raise ValueError("vision_provider must be 'gemini' or 'openai'")
        if self.vision_timeout_seconds <= 0:
            raise ValueError("vision_timeout_seconds must be > 0")
        if self.vision_max_tokens <= 0:
            raise ValueError("vision_max_tokens must be > 0")
        if self.log_format not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")


_settings: CrawlerSettings | None = None


def get_settings() -> CrawlerSettings:
    global _settings
    if _settings is None:
        _settings = CrawlerSettings()
        _settings.validate()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
