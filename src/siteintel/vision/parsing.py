"""Typed parsing of vision-model responses.

Models answer with loosely structured JSON. Everything here is total: a
response either validates into a typed value (``Parsed``) or comes back as
``Malformed`` carrying the raw text, and callers only branch on that tag.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..domain.models import FeatureType, InteractionMethod, PageType
from ..models.site_config import Feature, FeatureOption

T = TypeVar("T")

RAW_SNIPPET_CHARS = 200


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T


@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str

    @property
    def snippet(self) -> str:
        return self.raw_text[:RAW_SNIPPET_CHARS]


VisionResult = Union[Parsed[T], Malformed]


class _VisionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _enum_or(enum_cls, default):
    def coerce(v: Any):
        try:
            return enum_cls(str(v).strip().lower())
        except ValueError:
            return default

    return coerce


_page_type = _enum_or(PageType, PageType.OTHER)
_feature_type = _enum_or(FeatureType, FeatureType.CONTENT)
_interaction = _enum_or(InteractionMethod, InteractionMethod.NONE)


class VisualElement(_VisionModel):
    name: str = ""
    type: FeatureType = FeatureType.CONTENT
    description: str = ""
    interaction_method: InteractionMethod = InteractionMethod.NONE
    options: Optional[list[str]] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v: Any) -> FeatureType:
        return _feature_type(v)

    @field_validator("interaction_method", mode="before")
    @classmethod
    def _coerce_method(cls, v: Any) -> InteractionMethod:
        return _interaction(v)

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, v: Any) -> Optional[list[str]]:
        if v is None:
            return None
        if not isinstance(v, list):
            return None
        return [str(o) for o in v if o is not None]


class PageAnalysis(_VisionModel):
    page_type: PageType = PageType.OTHER
    confidence: int = 50
    title: str = ""
    description: str = ""
    interactive_elements: list[VisualElement] = Field(default_factory=list)

    @field_validator("page_type", mode="before")
    @classmethod
    def _coerce_page_type(cls, v: Any) -> PageType:
        return _page_type(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> int:
        try:
            return max(0, min(100, int(round(float(v)))))
        except (TypeError, ValueError):
            return 0


class DetectedFeature(_VisionModel):
    id: str = ""
    name: str = ""
    description: str = ""
    type: FeatureType = FeatureType.CONTENT
    interaction_method: InteractionMethod = InteractionMethod.NONE
    options: Optional[list[FeatureOption]] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v: Any) -> FeatureType:
        return _feature_type(v)

    @field_validator("interaction_method", mode="before")
    @classmethod
    def _coerce_method(cls, v: Any) -> InteractionMethod:
        return _interaction(v)

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, v: Any) -> Optional[list[dict]]:
        if not isinstance(v, list):
            return None
        options = []
        for o in v:
            if isinstance(o, str):
                options.append({"label": o, "value": o})
            elif isinstance(o, dict):
                options.append({"label": str(o.get("label") or ""), "value": str(o.get("value") or "")})
        return options

    def to_feature(self, page_type: PageType, index: int) -> Feature:
        return Feature(
            id=self.id or f"{page_type.value}_feature_{index}",
            name=self.name,
            description=self.description,
            type=self.type,
            interaction_method=self.interaction_method,
            options=self.options,
        )


class FeatureAnalysis(_VisionModel):
    features: list[DetectedFeature] = Field(default_factory=list)


class UrlParamPattern(_VisionModel):
    param: str = ""
    format: str = ""
    example: str = ""


class UrlPatterns(_VisionModel):
    price_filter: Optional[UrlParamPattern] = None
    sort: Optional[UrlParamPattern] = None
    filters: list[UrlParamPattern] = Field(default_factory=list)


class UrlInteractionAnalysis(_VisionModel):
    url_patterns: UrlPatterns = Field(default_factory=UrlPatterns)
    uses_url_filtering: bool = False
    uses_dom_filtering: bool = False
    notes: str = ""


def extract_json_object(text: str) -> Union[dict[str, Any], Malformed]:
    """Pull the outermost JSON object out of a possibly chatty response."""
    if not text or "{" not in text:
        return Malformed(raw_text=text or "", reason="missing_json")
    start, end = text.find("{"), text.rfind("}")
    if end <= start:
        return Malformed(raw_text=text, reason="missing_json")
    try:
        obj = json.loads(text[start : end + 1])
    except ValueError as e:
        return Malformed(raw_text=text, reason=f"invalid_json: {e}")
    if not isinstance(obj, dict):
        return Malformed(raw_text=text, reason="json_not_object")
    return obj


def _parse(text: str, model: type[BaseModel]) -> VisionResult:
    obj = extract_json_object(text)
    if isinstance(obj, Malformed):
        return obj
    try:
        return Parsed(model.model_validate(obj))
    except ValidationError as e:
        return Malformed(raw_text=text, reason=f"schema: {e.error_count()} errors")


def parse_page_analysis(text: str) -> VisionResult[PageAnalysis]:
    return _parse(text, PageAnalysis)


def parse_feature_analysis(text: str) -> VisionResult[FeatureAnalysis]:
    return _parse(text, FeatureAnalysis)


def parse_url_interactions(text: str) -> VisionResult[UrlInteractionAnalysis]:
    return _parse(text, UrlInteractionAnalysis)
