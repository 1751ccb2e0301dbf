from __future__ import annotations

from siteintel.crawler.dom import parse_html
from siteintel.crawler.features import (
    convert_elements_to_features,
    enrich_filters_with_url_patterns,
    find_by_visible_text,
    map_features_to_dom,
)
from siteintel.domain.models import FeatureType, InteractionMethod, PageType
from siteintel.models.site_config import Feature, SelectorEntry
from siteintel.vision.parsing import UrlInteractionAnalysis, UrlParamPattern, UrlPatterns

LISTING = """<html><body>
<aside class="filter-sidebar"><button value="lt-500">Under $500</button><button>Queen</button></aside>
<select class="sort-select" name="sort">
  <option value="price-asc">Price: Low to High</option><option value="newest">Newest</option>
</select>
<div id="specifications">Dimensions 200 x 180 cm</div>
<button class="xk29fj2">Compare now</button>
<a class="compare-link" href="/compare">Compare now</a>
</body></html>"""


def _feature(fid: str, name: str, ftype: FeatureType, **kwargs) -> Feature:
    return Feature(id=fid, name=name, type=ftype, **kwargs)


def test_maps_vision_features_to_selectors_and_options() -> None:
    features = [
        _feature("price_filter", "Price", FeatureType.FILTER),
        _feature("sort", "Sort", FeatureType.SORT),
        _feature("specifications", "Specifications", FeatureType.CONTENT),
        _feature("compare", "Compare now", FeatureType.CTA),
        _feature("gift_wrap", "Gift wrap", FeatureType.CTA),
    ]

    mapped = {f.id: f for f in map_features_to_dom(parse_html(LISTING), features)}

    price = mapped["price_filter"]
    assert price.selector == '[class*="filter-sidebar"]'
    assert [(o.label, o.value) for o in price.options or []] == [("Under $500", "lt-500"), ("Queen", "Queen")]

    sort = mapped["sort"]
    assert sort.selector == 'select[class*="sort"]'
    assert [o.value for o in sort.options or []] == ["price-asc", "newest"]

    assert mapped["specifications"].selector == "#specifications"
    assert mapped["compare"].selector == "a.compare-link"
    assert mapped["gift_wrap"].selector is None


def test_visible_text_lookup_needs_a_real_phrase() -> None:
    soup = parse_html(LISTING)
    assert find_by_visible_text(soup, "Qu") is None
    # the matching button has no id, test id or readable class to anchor on
    assert find_by_visible_text(soup, "queen") is None
    assert find_by_visible_text(soup, "compare") == "a.compare-link"


def test_url_driven_filters_switch_to_url_params() -> None:
    features = [
        _feature("price_filter", "Price", FeatureType.FILTER, interaction_method=InteractionMethod.CLICK),
        _feature("color_filter", "Color", FeatureType.FILTER),
        _feature("brand_filter", "Brand", FeatureType.FILTER),
        _feature("sort", "Sort", FeatureType.SORT),
        _feature("search", "Search", FeatureType.SEARCH),
    ]
    analysis = UrlInteractionAnalysis(
        url_patterns=UrlPatterns(
            price_filter=UrlParamPattern(param="price", format="[min,max]"),
            sort=UrlParamPattern(param="sort_by"),
            filters=[UrlParamPattern(param="color")],
        ),
        uses_url_filtering=True,
    )
    lines: list[str] = []

    enriched = {f.id: f.interaction_method for f in enrich_filters_with_url_patterns(features, analysis, lines.append)}

    assert enriched == {
        "price_filter": InteractionMethod.URL_PARAM,
        "color_filter": InteractionMethod.URL_PARAM,
        "brand_filter": InteractionMethod.NONE,
        "sort": InteractionMethod.URL_PARAM,
        "search": InteractionMethod.NONE,
    }
    assert 'price filter: uses URL param "price"' in lines[0]


def test_dom_filtering_sites_keep_click_interactions() -> None:
    features = [_feature("price_filter", "Price", FeatureType.FILTER, interaction_method=InteractionMethod.CLICK)]
    analysis = UrlInteractionAnalysis(
        url_patterns=UrlPatterns(price_filter=UrlParamPattern(param="price")), uses_dom_filtering=True
    )
    assert enrich_filters_with_url_patterns(features, analysis) == features


def test_dom_only_features_from_consensus_elements() -> None:
    elements = {
        "filterSidebar": SelectorEntry(selectors=['[class*="filter-sidebar"]'], confidence=80),
        "addToCart": SelectorEntry(selectors=['button[name="add"]', "form button"], confidence=90),
        "price": SelectorEntry(selectors=['[itemprop="price"]'], confidence=90),
    }

    features = convert_elements_to_features(elements)

    assert set(features) == {PageType.CATEGORY, PageType.PRODUCT}
    sidebar = features[PageType.CATEGORY][0]
    assert sidebar.type is FeatureType.FILTER
    assert sidebar.name == "filter Sidebar"
    assert sidebar.interaction_method is InteractionMethod.NONE
    cta = features[PageType.PRODUCT][0]
    assert cta.selector == 'button[name="add"]'
    assert cta.interaction_method is InteractionMethod.CLICK
