"""Gemini vision adapter (generateContent REST API)."""

from __future__ import annotations

import asyncio
import base64
from typing import Any

import aiohttp

from ..domain.errors import NetworkTimeoutError, VisionServiceError
from ..observability.logger import get_logger
from .runtime import VisionRequest, VisionRuntime

logger = get_logger(__name__)


class GeminiVisionAdapter(VisionRuntime):
    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_tokens: int = 4096,
        timeout_seconds: int = 60,
    ):
        super().__init__(max_tokens=max_tokens, timeout_seconds=timeout_seconds)
        if not api_key:
            raise ValueError("Gemini API key required")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")

    def _payload(self, req: VisionRequest) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": req.prompt},
                        {
                            "inline_data": {
                                "mime_type": "image/png",
                                "data": base64.b64encode(req.image_png).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {
                "temperature": float(req.temperature),
                "maxOutputTokens": int(req.max_tokens),
                "responseMimeType": "application/json",
            },
        }

    async def generate(self, req: VisionRequest) -> str:
        url = f"{self._base_url}/models/{self._model}:generateContent"
        timeout = aiohttp.ClientTimeout(total=max(1, int(req.timeout_seconds)))
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, params={"key": self._api_key}, json=self._payload(req)) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        raise VisionServiceError(
                            "gemini_request_failed",
                            detail=f"status={resp.status} body={body[:500]}",
                            status=resp.status,
                        )
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError("gemini_timeout", detail=str(e)) from e
        except aiohttp.ClientError as e:
            raise VisionServiceError("gemini_network_error", detail=str(e)) from e
        except ValueError as e:
            # 200 with a body that is not JSON (proxy error page, HTML fallback)
            raise VisionServiceError("gemini_invalid_response", detail=str(e)) from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.info("gemini_empty_response")
            return ""
        return text if isinstance(text, str) else ""
