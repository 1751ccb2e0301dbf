"""Vision runtime interface.

The crawl talks to vision-language models only through ``VisionRuntime``.
Adapters implement ``generate``; the three analysis calls are shared and always
return a ``Parsed`` / ``Malformed`` tagged result instead of raising on bad
model output. Transport failures (HTTP errors, timeouts) still raise
``VisionServiceError`` / ``NetworkTimeoutError`` so the caller can skip the
optional step.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..domain.models import PageType
from ..observability.logger import get_logger
from .parsing import (
    FeatureAnalysis,
    PageAnalysis,
    UrlInteractionAnalysis,
    VisionResult,
    parse_feature_analysis,
    parse_page_analysis,
    parse_url_interactions,
)

logger = get_logger(__name__)

CLASSIFY_PROMPT = """You are analyzing a screenshot of an e-commerce website page.

Classify this page and identify all interactive elements visible on screen.

Respond with a JSON object in this exact format:
{
  "pageType": "home" | "product" | "category" | "cart" | "search" | "other",
  "confidence": <number 0-100>,
  "title": "<page title visible on screen>",
  "description": "<1 sentence describing the page>",
  "interactiveElements": [
    {
      "name": "<element name, e.g. 'Price Range Filter'>",
      "type": "filter" | "sort" | "search" | "variant" | "cta" | "navigation" | "content" | "gallery",
      "description": "<what it does>",
      "interactionMethod": "url_param" | "click" | "input" | "select" | "none",
      "options": ["<option1>", "<option2>"]
    }
  ]
}

Classification rules:
- "home": Landing page with hero banners, featured categories, promotions
- "product": Single product detail page with add-to-cart, images, specs, price
- "category": Product listing/grid with multiple product cards, filters, sorting
- "cart": Shopping cart with line items, totals, checkout button
- "search": Search results page
- "other": Account, blog, policy, FAQ, etc.

For interactiveElements, identify every visible filter, sort dropdown, search
bar, variant picker, CTA button, navigation element, content section and image
gallery."""

FEATURE_PROMPT = """You are analyzing a full-page screenshot of an e-commerce website.

Identify ALL interactive features on this page in detail. For each feature, determine:
1. What it is (filter, sort, variant picker, CTA, etc.)
2. How to interact with it (URL parameter, click, input field, dropdown)
3. What options/values are available

Respond with a JSON object:
{
  "features": [
    {
      "id": "<snake_case_id>",
      "name": "<human readable name>",
      "description": "<what this feature does>",
      "type": "filter" | "sort" | "search" | "variant" | "cta" | "navigation" | "content" | "gallery",
      "interactionMethod": "url_param" | "click" | "input" | "select" | "none",
      "options": [
        {"label": "<display text>", "value": "<value to use>"}
      ]
    }
  ]
}

Be exhaustive: filters, sort options with their values, variant pickers, CTA
buttons, breadcrumbs, tabs, pagination, load more, reviews, Q&A,
specifications, gallery controls, payment options and delivery checkers.

For filters that use URL parameters (common in modern SPAs), note that.
For filters that use DOM inputs (sliders, checkboxes), note that."""

URL_INTERACTION_PROMPT = """You are analyzing an e-commerce website page. I will show you the current URL and a screenshot.

Your task: determine how this website handles filtering and sorting.

Many modern e-commerce sites use URL query parameters for filters:
- Price: ?priceRange=[500,44000] or ?minPrice=500&maxPrice=44000
- Sort: ?sortBy=popularity or ?sort=price-asc
- Filters: ?filterIds=[706] or ?brand=acme

Look at the URL bar and the page content. Identify the URL parameter patterns.

Respond with JSON:
{
  "urlPatterns": {
    "priceFilter": {"param": "<param name>", "format": "<description of format>", "example": "<example value>"},
    "sort": {"param": "<param name>", "format": "<description>", "example": "<example>"},
    "filters": [{"param": "<param name>", "format": "<description>", "example": "<example>"}]
  },
  "usesUrlFiltering": true | false,
  "usesDomFiltering": true | false,
  "notes": "<any additional observations>"
}"""


@dataclass(frozen=True)
class VisionRequest:
    prompt: str
    image_png: bytes
    temperature: float = 0.1
    max_tokens: int = 4096
    timeout_seconds: int = 60


class VisionRuntime:
    """Base class for vision adapters."""

    def __init__(self, *, max_tokens: int = 4096, timeout_seconds: int = 60):
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds

    async def generate(self, req: VisionRequest) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def _request(self, prompt: str, image_png: bytes) -> VisionRequest:
        return VisionRequest(
            prompt=prompt,
            image_png=image_png,
            max_tokens=self._max_tokens,
            timeout_seconds=self._timeout_seconds,
        )

    async def classify_page(self, screenshot: bytes) -> VisionResult[PageAnalysis]:
        text = await self.generate(self._request(CLASSIFY_PROMPT, screenshot))
        return parse_page_analysis(text)

    async def detect_features(self, screenshot: bytes, page_type: PageType) -> VisionResult[FeatureAnalysis]:
        prompt = f"{FEATURE_PROMPT}\n\nThis is a {page_type.value} page. Focus on features typical for this page type."
        text = await self.generate(self._request(prompt, screenshot))
        return parse_feature_analysis(text)

    async def analyze_url_interactions(self, screenshot: bytes, current_url: str) -> VisionResult[UrlInteractionAnalysis]:
        prompt = f"{URL_INTERACTION_PROMPT}\n\nCurrent URL: {current_url}"
        text = await self.generate(self._request(prompt, screenshot))
        return parse_url_interactions(text)
