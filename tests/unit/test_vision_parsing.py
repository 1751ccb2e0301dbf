from __future__ import annotations

from siteintel.domain.models import FeatureType, InteractionMethod, PageType
from siteintel.vision.parsing import (
    Malformed,
    Parsed,
    parse_feature_analysis,
    parse_page_analysis,
    parse_url_interactions,
)


def test_page_analysis_inside_chatty_fenced_reply() -> None:
    text = 'Sure! Here is the analysis:\n```json\n{"pageType": "Product", "confidence": "87.6", "title": "Oak Bed"}\n```'

    result = parse_page_analysis(text)

    assert isinstance(result, Parsed)
    assert result.value.page_type is PageType.PRODUCT
    assert result.value.confidence == 88
    assert result.value.title == "Oak Bed"


def test_unknown_values_fall_back_to_safe_defaults() -> None:
    result = parse_page_analysis('{"pageType": "landing", "confidence": 250, "interactiveElements": [{"type": "widget"}]}')

    assert isinstance(result, Parsed)
    assert result.value.page_type is PageType.OTHER
    assert result.value.confidence == 100
    assert result.value.interactive_elements[0].type is FeatureType.CONTENT


def test_missing_or_broken_json_is_malformed() -> None:
    for text in ("", "no json here", '{"pageType": "product",', '["product"]'):
        result = parse_page_analysis(text)
        assert isinstance(result, Malformed), text
        assert result.raw_text == text

    long = "x" * 500
    assert len(parse_page_analysis(long).snippet) == 200


def test_schema_mismatch_is_malformed() -> None:
    result = parse_feature_analysis('{"features": "none"}')
    assert isinstance(result, Malformed)
    assert result.reason.startswith("schema:")


def test_feature_options_accept_strings_and_objects() -> None:
    text = """{"features": [
        {"id": "size", "name": "Size", "type": "variant", "interactionMethod": "CLICK",
         "options": ["Queen", {"label": "King", "value": "k"}, 3]},
        {"name": "Delivery", "type": "teleport"}
    ]}"""

    result = parse_feature_analysis(text)

    assert isinstance(result, Parsed)
    size, delivery = result.value.features
    assert size.interaction_method is InteractionMethod.CLICK
    assert [(o.label, o.value) for o in size.options or []] == [("Queen", "Queen"), ("King", "k")]
    feature = delivery.to_feature(PageType.PRODUCT, 1)
    assert feature.id == "product_feature_1"
    assert feature.type is FeatureType.CONTENT


def test_url_interaction_patterns() -> None:
    text = (
        '{"urlPatterns": {"priceFilter": {"param": "price", "format": "[min,max]", "example": "price=[1,2]"},'
        ' "filters": [{"param": "color"}]}, "usesUrlFiltering": true}'
    )

    result = parse_url_interactions(text)

    assert isinstance(result, Parsed)
    analysis = result.value
    assert analysis.uses_url_filtering
    assert not analysis.uses_dom_filtering
    assert analysis.url_patterns.price_filter is not None
    assert analysis.url_patterns.price_filter.param == "price"
    assert analysis.url_patterns.sort is None
    assert [f.param for f in analysis.url_patterns.filters] == ["color"]
