from __future__ import annotations

import asyncio
import base64

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from siteintel.config.settings import CrawlerSettings
from siteintel.domain.errors import VisionServiceError
from siteintel.vision.factory import build_vision_runtime
from siteintel.vision.gemini_adapter import GeminiVisionAdapter
from siteintel.vision.openai_adapter import OpenAIVisionAdapter
from siteintel.vision.runtime import VisionRequest


def test_no_credential_means_dom_only() -> None:
    assert build_vision_runtime(None, CrawlerSettings()) is None
    assert build_vision_runtime("", CrawlerSettings()) is None


def test_provider_selection() -> None:
    assert isinstance(build_vision_runtime("k", CrawlerSettings(vision_provider="gemini")), GeminiVisionAdapter)
    assert isinstance(build_vision_runtime("k", CrawlerSettings(vision_provider="openai")), OpenAIVisionAdapter)


def test_gemini_payload_inlines_screenshot() -> None:
    adapter = GeminiVisionAdapter(api_key="k")

    payload = adapter._payload(VisionRequest(prompt="classify", image_png=b"\x89PNG", max_tokens=512))

    text, image = payload["contents"][0]["parts"]
    assert text == {"text": "classify"}
    assert image["inline_data"]["mime_type"] == "image/png"
    assert base64.b64decode(image["inline_data"]["data"]) == b"\x89PNG"
    assert payload["generationConfig"]["maxOutputTokens"] == 512
    assert payload["generationConfig"]["responseMimeType"] == "application/json"


def test_adapters_require_a_key() -> None:
    with pytest.raises(ValueError):
        GeminiVisionAdapter(api_key="")


def _html_fallback_app() -> web.Application:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(text="<html><body>Service temporarily unavailable</body></html>", content_type="text/html")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    return app


def test_gemini_non_json_reply_is_a_vision_error() -> None:
    async def scenario() -> VisionServiceError:
        async with TestServer(_html_fallback_app()) as server:
            adapter = GeminiVisionAdapter(api_key="k", base_url=str(server.make_url("/v1beta")))
            with pytest.raises(VisionServiceError) as exc:
                await adapter.classify_page(b"\x89PNG")
            return exc.value

    err = asyncio.run(scenario())

    assert err.info.message == "gemini_invalid_response"
    assert err.info.code == "VISION_SERVICE_ERROR"
