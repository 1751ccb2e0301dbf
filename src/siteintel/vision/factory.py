"""Vision adapter selection."""

from __future__ import annotations

from typing import Optional

from ..config.settings import CrawlerSettings
from .gemini_adapter import GeminiVisionAdapter
from .openai_adapter import OpenAIVisionAdapter
from .runtime import VisionRuntime


def build_vision_runtime(api_key: Optional[str], settings: CrawlerSettings) -> Optional[VisionRuntime]:
    """Adapter for the configured provider, or None when no credential was supplied."""
    if not api_key:
        return None
    if settings.vision_provider == "openai":
        return OpenAIVisionAdapter(
            api_key=api_key,
            model=settings.openai_vision_model,
            base_url=settings.openai_base_url,
            max_tokens=settings.vision_max_tokens,
            timeout_seconds=settings.vision_timeout_seconds,
        )
    return GeminiVisionAdapter(
        api_key=api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        max_tokens=settings.vision_max_tokens,
        timeout_seconds=settings.vision_timeout_seconds,
    )
