"""Interaction recipes.

A recipe is the ordered list of browser steps an agent replays to use one
feature: apply a filter, pick a variant, run a search. Template slots such as
``{{min}}`` or ``{{query}}`` are filled in by the consumer.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Optional

from ..domain.errors import CrawlerDomainError
from ..domain.models import FeatureType, InteractionMethod, PageType
from ..models.site_config import (
    ClickStep,
    Feature,
    InputStep,
    InteractionRecipe,
    RecipeStep,
    ScrollStep,
    UrlParamStep,
    WaitStep,
)
from ..observability.logger import get_logger
from ..scraping.driver import BrowserDriver
from ..scraping.navigation import Navigator
from ..vision.parsing import UrlInteractionAnalysis
from .dom import count_safe, parse_html

logger = get_logger(__name__)

LogFn = Callable[[str], None]

MAX_VALIDATED_RECIPES = 5
_TEMPLATE_ATTR_RE = re.compile(r"\[[^\]]*\{\{[^}]*\}\}[^\]]*\]")
_TEMPLATE_RE = re.compile(r"\{\{[^}]*\}\}")


def recipe_id(page_type: PageType, feature: Feature) -> str:
    return f"{page_type.value}_{feature.id}"


def _describe(feature: Feature) -> str:
    if feature.type is FeatureType.FILTER:
        return f"Apply {feature.name}"
    if feature.type is FeatureType.SORT:
        return f"Sort by {feature.name}"
    if feature.type is FeatureType.SEARCH:
        return "Search for products"
    if feature.type is FeatureType.VARIANT:
        return f"Select {feature.name}"
    if feature.type is FeatureType.GALLERY:
        return "Open image gallery"
    if feature.type is FeatureType.NAVIGATION:
        return f"View {feature.name}"
    return feature.name


def _filter_steps(feature: Feature, analysis: Optional[UrlInteractionAnalysis]) -> list[RecipeStep]:
    if feature.interaction_method is InteractionMethod.URL_PARAM:
        price = analysis.url_patterns.price_filter if analysis else None
        if "price" in feature.name.lower() and price is not None and price.param:
            return [
                UrlParamStep(
                    key=price.param,
                    value="[{{min}},{{max}}]",
                    template=f"{price.param}=[{{{{min}}}},{{{{max}}}}]",
                )
            ]
        return [UrlParamStep(key=feature.id.replace("_filter", ""), value="{{value}}")]
    if feature.selector:
        return [ClickStep(selector=feature.selector), WaitStep(ms=500)]
    return []


def _sort_steps(feature: Feature, analysis: Optional[UrlInteractionAnalysis]) -> list[RecipeStep]:
    sort = analysis.url_patterns.sort if analysis else None
    if feature.interaction_method is InteractionMethod.URL_PARAM and sort is not None and sort.param:
        return [UrlParamStep(key=sort.param, value="{{value}}")]
    if feature.selector:
        return [ClickStep(selector=feature.selector), WaitStep(ms=300)]
    return []


def _selector_steps(feature: Feature) -> list[RecipeStep]:
    sel = feature.selector
    if not sel:
        return [ScrollStep(direction="down")] if feature.type is FeatureType.CONTENT else []
    if feature.type is FeatureType.SEARCH:
        return [ClickStep(selector=sel), InputStep(selector=sel, value="{{query}}"), WaitStep(ms=500)]
    if feature.type is FeatureType.VARIANT:
        return [ClickStep(selector=f'{sel} [data-value="{{{{value}}}}"]'), WaitStep(ms=300)]
    if feature.type is FeatureType.CTA:
        return [ScrollStep(direction="down"), ClickStep(selector=sel), WaitStep(ms=500)]
    if feature.type is FeatureType.GALLERY:
        return [ScrollStep(direction="up"), ClickStep(selector=sel)]
    if feature.type is FeatureType.NAVIGATION:
        return [ClickStep(selector=sel), WaitStep(ms=500)]
    return [ScrollStep(direction="down")]


def generate_recipe(
    feature: Feature,
    page_type: PageType,
    analysis: Optional[UrlInteractionAnalysis] = None,
) -> InteractionRecipe:
    if feature.type is FeatureType.FILTER:
        steps = _filter_steps(feature, analysis)
    elif feature.type is FeatureType.SORT:
        steps = _sort_steps(feature, analysis)
    else:
        steps = _selector_steps(feature)
    return InteractionRecipe(
        id=recipe_id(page_type, feature),
        description=_describe(feature),
        page_types=[page_type],
        steps=steps,
    )


def build_recipes(
    features: Mapping[PageType, Sequence[Feature]],
    url_interactions: Mapping[PageType, UrlInteractionAnalysis],
    log: LogFn = lambda _m: None,
) -> tuple[dict[str, InteractionRecipe], dict[PageType, list[Feature]]]:
    """One recipe per feature; returns the recipes and the features with ``recipe_id`` filled in."""
    recipes: dict[str, InteractionRecipe] = {}
    linked: dict[PageType, list[Feature]] = {}
    for page_type, page_features in features.items():
        analysis = url_interactions.get(page_type)
        out: list[Feature] = []
        for feature in page_features:
            recipe = generate_recipe(feature, page_type, analysis)
            recipes[recipe.id] = recipe
            out.append(feature.model_copy(update={"recipe_id": recipe.id}))
        linked[page_type] = out
    log(f"generated {len(recipes)} interaction recipes")
    return recipes, linked


def checkable_selectors(recipe: InteractionRecipe) -> list[str]:
    """Click/input selectors with template attribute filters removed."""
    selectors = []
    for step in recipe.steps:
        if isinstance(step, (ClickStep, InputStep)):
            sel = _TEMPLATE_RE.sub("", _TEMPLATE_ATTR_RE.sub("", step.selector)).strip()
            if sel:
                selectors.append(sel)
    return selectors


async def validate_recipes(
    driver: BrowserDriver,
    navigator: Navigator,
    recipes: Mapping[str, InteractionRecipe],
    sample_urls: Mapping[PageType, Sequence[str]],
    log: LogFn,
) -> dict[str, bool]:
    """Spot-check the first few recipes against a live sample page. Results are only reported."""
    results: dict[str, bool] = {}
    for recipe in list(recipes.values())[:MAX_VALIDATED_RECIPES]:
        page_type = recipe.page_types[0]
        urls = sample_urls.get(page_type) or []
        if not urls:
            continue
        try:
            async with driver.page() as page:
                if not await navigator.navigate_to(page, urls[0], log):
                    continue
                soup = parse_html(await page.snapshot())
        except CrawlerDomainError as e:
            log(f"  {recipe.id}: validation skipped ({e})")
            continue
        valid = all(count_safe(soup, sel) > 0 for sel in checkable_selectors(recipe))
        results[recipe.id] = valid
        log(f"  {recipe.id}: {'VALID' if valid else 'NEEDS REVIEW'}")
    logger.info("recipes_validated", checked=len(results), valid=sum(results.values()))
    return results
