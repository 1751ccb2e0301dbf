"""OpenAI vision adapter.

Sends the screenshot as a base64 data URL through the chat completions API.
Works with any OpenAI-compatible endpoint via ``base_url``.
"""

from __future__ import annotations

import base64

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, OpenAIError

from ..domain.errors import NetworkTimeoutError, VisionServiceError
from .runtime import VisionRequest, VisionRuntime

SYSTEM_PROMPT = "You are a visual web page analyst that responds in JSON format."


class OpenAIVisionAdapter(VisionRuntime):
    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        timeout_seconds: int = 60,
    ):
        super().__init__(max_tokens=max_tokens, timeout_seconds=timeout_seconds)
        if not api_key:
            raise ValueError("OpenAI API key required")
        self._model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or "https://api.openai.com/v1")

    async def generate(self, req: VisionRequest) -> str:
        data_url = "data:image/png;base64," + base64.b64encode(req.image_png).decode("ascii")
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": req.prompt},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    },
                ],
                temperature=float(req.temperature),
                max_tokens=int(req.max_tokens),
                response_format={"type": "json_object"},
                timeout=max(1, int(req.timeout_seconds)),
            )
        except APITimeoutError as e:
            raise NetworkTimeoutError("openai_timeout", detail=str(e)) from e
        except APIStatusError as e:
            raise VisionServiceError("openai_request_failed", detail=str(e), status=e.status_code) from e
        except APIConnectionError as e:
            raise VisionServiceError("openai_network_error", detail=str(e)) from e
        except OpenAIError as e:
            raise VisionServiceError("openai_invalid_response", detail=str(e)) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
