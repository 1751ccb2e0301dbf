"""Framework-agnostic domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)


class PageType(str, Enum):
    HOME = "home"
    PRODUCT = "product"
    CATEGORY = "category"
    CART = "cart"
    SEARCH = "search"
    OTHER = "other"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class VerifyMode(str, Enum):
    EXISTS = "exists"
    TEXT = "text"
    PRICE = "price"
    IMAGE = "image"
    COUNT = "count"


class ClassificationMethod(str, Enum):
    JSON_LD = "jsonld"
    URL = "url"
    DOM = "dom"
    VLM = "vlm"
    FALLBACK = "fallback"


class FeatureType(str, Enum):
    FILTER = "filter"
    SORT = "sort"
    SEARCH = "search"
    VARIANT = "variant"
    CTA = "cta"
    NAVIGATION = "navigation"
    CONTENT = "content"
    GALLERY = "gallery"


class InteractionMethod(str, Enum):
    URL_PARAM = "url_param"
    CLICK = "click"
    INPUT = "input"
    SELECT = "select"
    NONE = "none"


class CrawlPhase(str, Enum):
    RECONNAISSANCE = "reconnaissance"
    URL_REGISTRY = "url_registry"
    FEATURE_DETECTION = "feature_detection"
    INTERACTION_RECIPES = "interaction_recipes"
    ASSEMBLY = "assembly"


@dataclass(frozen=True)
class VerifyResult:
    valid: bool
    example_value: Optional[str] = None


@dataclass(frozen=True)
class ProbeResult:
    """One candidate selector observed on one page for one intent."""

    selector: str
    matched: bool
    verified: bool
    example_value: Optional[str] = None


# intent -> probe results for every candidate, one mapping per visited page
PageProbeResults = dict[str, list[ProbeResult]]


@dataclass(frozen=True)
class VisualClassification:
    url: str
    page_type: PageType
    confidence: int
    method: ClassificationMethod = ClassificationMethod.VLM
