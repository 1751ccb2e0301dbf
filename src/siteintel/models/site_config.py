"""SiteConfig artifact models.

The persisted artifact is consumed by a browser-side assistant, so every model
serialises with camelCase keys (``model_dump(by_alias=True)``) while Python code
uses snake_case attributes.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..domain.models import FeatureType, InteractionMethod, JobStatus, PageType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Page types / navigation ──────────────────────────────────────────────────


class PageTypeRule(CamelModel):
    url_pattern: str
    dom_signature: Optional[str] = None
    json_ld_type: Optional[str] = None
    label: str
    confidence: int = Field(ge=0, le=100)


class NavEdge(CamelModel):
    label: str
    href: str
    selector: Optional[str] = None
    target_page_type: PageType


# ── Selectors ────────────────────────────────────────────────────────────────


class SelectorEntry(CamelModel):
    selectors: list[str] = Field(min_length=1, max_length=5)
    confidence: int = Field(ge=0, le=100)
    sample_count: int = Field(default=0, ge=0)
    example_value: Optional[str] = None


class ProductSchema(CamelModel):
    name: Optional[str] = None
    price: Optional[str] = None
    original_price: Optional[str] = None
    rating: Optional[str] = None
    review_count: Optional[str] = None
    highlights: Optional[str] = None
    description: Optional[str] = None
    images: Optional[str] = None
    add_to_cart: Optional[str] = None


class ListingSchema(CamelModel):
    card: Optional[str] = None
    name: Optional[str] = None
    price: Optional[str] = None
    rating: Optional[str] = None
    link: Optional[str] = None
    filter_sidebar: Optional[str] = None


class CoverageReport(CamelModel):
    pdp_intents_covered: int = 0
    pdp_intents_total: int = 0
    plp_intents_covered: int = 0
    plp_intents_total: int = 0
    global_intents_covered: int = 0
    global_intents_total: int = 0
    uncovered: list[str] = Field(default_factory=list)
    overall_pct: int = Field(default=0, ge=0, le=100)


# ── URL registry ─────────────────────────────────────────────────────────────


class ProductUrl(CamelModel):
    name: str
    url: str
    category: str


class CategoryUrl(CamelModel):
    name: str
    url: str


class ValidatedPattern(CamelModel):
    page_type: PageType
    pattern: str
    examples: list[str] = Field(min_length=1, max_length=5)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"pattern does not compile: {e}") from e
        return v

    def matches(self, path: str) -> bool:
        return re.search(self.pattern, path) is not None


class UrlRegistry(CamelModel):
    products: list[ProductUrl] = Field(default_factory=list)
    categories: list[CategoryUrl] = Field(default_factory=list)
    validated_patterns: list[ValidatedPattern] = Field(default_factory=list)


# ── Features / recipes ───────────────────────────────────────────────────────


class FeatureOption(CamelModel):
    label: str
    value: str


class Feature(CamelModel):
    id: str
    name: str
    description: str = ""
    type: FeatureType
    interaction_method: InteractionMethod = InteractionMethod.NONE
    selector: Optional[str] = None
    recipe_id: Optional[str] = None
    options: Optional[list[FeatureOption]] = None


class NavigateStep(CamelModel):
    action: Literal["navigate"] = "navigate"
    url: str


class ClickStep(CamelModel):
    action: Literal["click"] = "click"
    selector: str


class UrlParamStep(CamelModel):
    action: Literal["url_param"] = "url_param"
    key: str
    value: str
    template: Optional[str] = None


class InputStep(CamelModel):
    action: Literal["input"] = "input"
    selector: str
    value: str


class ScrollStep(CamelModel):
    action: Literal["scroll"] = "scroll"
    direction: Literal["down", "up"] = "down"
    amount: Optional[int] = None


class WaitStep(CamelModel):
    action: Literal["wait"] = "wait"
    ms: int = Field(ge=0)


RecipeStep = Annotated[
    Union[NavigateStep, ClickStep, UrlParamStep, InputStep, ScrollStep, WaitStep],
    Field(discriminator="action"),
]


class InteractionRecipe(CamelModel):
    id: str
    description: str
    page_types: list[PageType]
    steps: list[RecipeStep] = Field(default_factory=list)


# ── Top-level artifact ───────────────────────────────────────────────────────


class CrawlStats(CamelModel):
    pages_visited: int = 0
    product_samples: int = 0
    category_samples: int = 0
    duration_ms: int = 0
    products_registered: int = 0
    validated_product_urls: int = 0


class SiteMeta(CamelModel):
    brand_name: str
    currency: str
    locale: str
    primary_categories: list[str] = Field(default_factory=list)
    platform: str = "custom"


class SiteConfig(CamelModel):
    domain: str
    version: str
    crawled_at: str
    crawl_stats: CrawlStats = Field(default_factory=CrawlStats)
    page_types: dict[PageType, PageTypeRule]
    elements: dict[str, SelectorEntry] = Field(default_factory=dict)
    navigation_graph: dict[PageType, list[NavEdge]] = Field(default_factory=dict)
    product_schema: ProductSchema = Field(default_factory=ProductSchema)
    listing_schema: ListingSchema = Field(default_factory=ListingSchema)
    main_nav: list[NavEdge] = Field(default_factory=list)
    coverage: CoverageReport = Field(default_factory=CoverageReport)
    url_registry: UrlRegistry = Field(default_factory=UrlRegistry)
    features: dict[PageType, list[Feature]] = Field(default_factory=dict)
    interaction_recipes: dict[str, InteractionRecipe] = Field(default_factory=dict)
    meta: SiteMeta

    @field_validator("page_types")
    @classmethod
    def validate_page_types(cls, v: dict[PageType, PageTypeRule]) -> dict[PageType, PageTypeRule]:
        if not v:
            raise ValueError("page_types must contain at least one rule")
        return v


# ── Jobs ─────────────────────────────────────────────────────────────────────


class CrawlJob(CamelModel):
    job_id: str
    domain: str
    url: str
    status: JobStatus = JobStatus.PENDING
    started_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None
    logs: list[str] = Field(default_factory=list)
