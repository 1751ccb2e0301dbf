"""E-commerce intent taxonomy.

Every intent names a semantic field, the verification mode its content must
pass, and an ordered list of vertical-agnostic candidate selectors probed on
each sampled page. Candidates are deliberately broad; consensus scoring across
samples decides which of them survive for a given site.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..domain.models import PageType, VerifyMode


@dataclass(frozen=True)
class TaxonomyIntent:
    name: str
    verify_as: VerifyMode
    candidates: tuple[str, ...]


def _intent(name: str, verify_as: VerifyMode, *candidates: str) -> TaxonomyIntent:
    return TaxonomyIntent(name=name, verify_as=verify_as, candidates=tuple(candidates))


_INTENTS: tuple[TaxonomyIntent, ...] = (
    # ── global ──────────────────────────────────────────────────────────────
    _intent(
        "searchBar", VerifyMode.EXISTS,
        'input[type="search"]',
        'input[name="q"]',
        'input[placeholder*="search" i]',
        '[role="search"] input',
        'form[action*="search"] input',
        '[class*="search-bar"] input',
        '[class*="searchBar"] input',
        '[data-testid*="search"]',
    ),
    _intent(
        "cartIcon", VerifyMode.EXISTS,
        '[data-testid*="cart-icon"]',
        '#cart-icon-bubble',
        '[aria-label*="cart" i]',
        '[class*="cart-icon"]',
        '[class*="cartIcon"]',
        'header a[href*="/cart"]',
    ),
    _intent(
        "logo", VerifyMode.IMAGE,
        'header a[href="/"] img',
        'img[alt*="logo" i]',
        '[class*="logo"] img',
        '[class*="logo"]',
    ),
    _intent(
        "mainNavigation", VerifyMode.COUNT,
        'nav[aria-label*="main" i] a',
        'header nav a',
        '[role="navigation"] a',
        '[class*="main-nav"] a',
        '[class*="mainNav"] a',
        '[class*="menu"] > ul > li > a',
    ),
    # ── product detail page ─────────────────────────────────────────────────
    _intent(
        "productTitle", VerifyMode.TEXT,
        '[data-testid="product-title"]',
        'h1[itemprop="name"]',
        'h1[class*="product-title"]',
        'h1[class*="productTitle"]',
        '[class*="product-name"] h1',
        'h1[class*="title"]',
        'h1',
    ),
    _intent(
        "price", VerifyMode.PRICE,
        '[data-testid="price"]',
        '[itemprop="price"]',
        '[class*="selling-price"]',
        '[class*="sellingPrice"]',
        '[class*="offer-price"]',
        '[class*="product-price"]',
        '[class*="productPrice"]',
        '[class*="price"]',
    ),
    _intent(
        "originalPrice", VerifyMode.PRICE,
        '[class*="original-price"]',
        '[class*="originalPrice"]',
        '[class*="compare-price"]',
        '[class*="mrp"]',
        '[class*="strike"]',
        's[class*="price"]',
        'del',
    ),
    _intent(
        "discount", VerifyMode.TEXT,
        '[class*="discount"]',
        '[class*="saving"]',
        '[class*="percent-off"]',
        '[class*="badge-sale"]',
    ),
    _intent(
        "rating", VerifyMode.TEXT,
        '[itemprop="ratingValue"]',
        '[data-testid*="rating"]',
        '[class*="rating-value"]',
        '[class*="ratingValue"]',
        '[class*="star-rating"]',
        '[aria-label*="rating" i]',
        '[class*="rating"]',
    ),
    _intent(
        "reviewCount", VerifyMode.TEXT,
        '[itemprop="reviewCount"]',
        '[class*="review-count"]',
        '[class*="reviewCount"]',
        '[class*="reviews-count"]',
        '[class*="rating-count"]',
        'a[href*="review"]',
    ),
    _intent(
        "productImages", VerifyMode.IMAGE,
        '[data-testid*="product-image"]',
        '[class*="product-images"]',
        '[class*="productImages"]',
        '[class*="product-gallery"]',
        '[class*="image-gallery"]',
        '[itemprop="image"]',
        '.swiper-slide img',
        'main img',
    ),
    _intent(
        "addToCart", VerifyMode.EXISTS,
        '[data-testid*="add-to-cart"]',
        'button[name="add"]',
        'button[id*="add-to-cart"]',
        'button[class*="add-to-cart"]',
        'button[class*="addToCart"]',
        'button[aria-label*="add to cart" i]',
        'form[action*="/cart/add"] button[type="submit"]',
    ),
    _intent(
        "buyNow", VerifyMode.EXISTS,
        '[data-testid*="buy-now"]',
        'button[name="buy"]',
        'button[class*="buy-now"]',
        'button[class*="buyNow"]',
        'button[aria-label*="buy now" i]',
        '.shopify-payment-button button',
    ),
    _intent(
        "sizeSelector", VerifyMode.COUNT,
        '[data-option-name*="size" i] button',
        'select[name*="size" i] option',
        '[class*="size-selector"] button',
        '[class*="sizeSelector"] button',
        '[class*="size-option"]',
        '[class*="variant"] button',
    ),
    _intent(
        "colorSelector", VerifyMode.COUNT,
        '[data-option-name*="color" i] button',
        'select[name*="color" i] option',
        '[class*="color-selector"] button',
        '[class*="colorSelector"] button',
        '[class*="color-option"]',
        '[class*="swatch"]',
    ),
    _intent(
        "quantitySelector", VerifyMode.EXISTS,
        'input[name="quantity"]',
        'select[name*="qty" i]',
        '[class*="quantity-selector"]',
        '[class*="quantity"] input',
    ),
    _intent(
        "highlights", VerifyMode.COUNT,
        '[class*="highlights"] li',
        '[class*="key-features"] li',
        '[class*="keyFeatures"] li',
        '[class*="product-features"] li',
        '[itemprop="description"] li',
    ),
    _intent(
        "specsSection", VerifyMode.TEXT,
        '[id*="specification"]',
        '[class*="specification"]',
        'table[class*="spec"]',
        '[class*="specs"]',
        '[class*="product-details"]',
        '[class*="productDetails"]',
        '[itemprop="description"]',
    ),
    _intent(
        "reviewSection", VerifyMode.EXISTS,
        '#reviews',
        '[data-testid*="reviews"]',
        '[class*="review-section"]',
        '[class*="reviews-section"]',
        '[class*="customer-reviews"]',
        '[id*="review"]',
    ),
    _intent(
        "breadcrumb", VerifyMode.TEXT,
        'nav[aria-label*="breadcrumb" i]',
        '[itemtype*="BreadcrumbList"]',
        '[class*="breadcrumb"]',
    ),
    _intent(
        "deliveryInfo", VerifyMode.TEXT,
        '[class*="delivery-info"]',
        '[class*="estimated-delivery"]',
        '[class*="shipping-info"]',
        '[class*="pincode"]',
        '[class*="delivery"]',
    ),
    # ── product listing page ────────────────────────────────────────────────
    _intent(
        "productCards", VerifyMode.COUNT,
        '[data-testid*="product-card"]',
        '[class*="product-card"]',
        '[class*="productCard"]',
        '[class*="product-item"]',
        '[class*="productItem"]',
        'li[class*="product"]',
        '[class*="collection-item"]',
        '[class*="grid-item"]',
    ),
    _intent(
        "productCardName", VerifyMode.TEXT,
        '[class*="product-card"] [class*="title"]',
        '[class*="product-card"] [class*="name"]',
        '[class*="productCard"] [class*="title"]',
        '[class*="productCard"] [class*="name"]',
        '[class*="product-item"] [class*="title"]',
        '[class*="product-item"] h3',
        '[class*="card"] h3',
        '[class*="card"] h2',
    ),
    _intent(
        "productCardPrice", VerifyMode.PRICE,
        '[class*="product-card"] [class*="price"]',
        '[class*="productCard"] [class*="price"]',
        '[class*="product-item"] [class*="price"]',
        'li[class*="product"] [class*="price"]',
        '[class*="card"] [class*="price"]',
    ),
    _intent(
        "productCardRating", VerifyMode.TEXT,
        '[class*="product-card"] [class*="rating"]',
        '[class*="productCard"] [class*="rating"]',
        '[class*="product-item"] [class*="rating"]',
        '[class*="card"] [class*="rating"]',
    ),
    _intent(
        "productCardImage", VerifyMode.IMAGE,
        '[class*="product-card"] img',
        '[class*="productCard"] img',
        '[class*="product-item"] img',
        'li[class*="product"] img',
        '[class*="card"] img',
    ),
    _intent(
        "filterSidebar", VerifyMode.EXISTS,
        '[data-testid*="filter"]',
        '[class*="filter-sidebar"]',
        '[class*="filterSidebar"]',
        'aside[class*="filter"]',
        '[class*="facet"]',
        '[class*="refinement"]',
        '[class*="filters"]',
    ),
    _intent(
        "sortDropdown", VerifyMode.EXISTS,
        'select[name*="sort" i]',
        'select[class*="sort"]',
        '[class*="sort-by"]',
        '[class*="sortBy"]',
        '[class*="sort-dropdown"]',
        'button[class*="sort"]',
        '[aria-label*="sort" i]',
    ),
    _intent(
        "pagination", VerifyMode.EXISTS,
        'nav[aria-label*="pagination" i]',
        'a[rel="next"]',
        '[class*="pagination"]',
        'button[class*="load-more"]',
        'button[class*="loadMore"]',
        '[class*="show-more"]',
    ),
    _intent(
        "resultCount", VerifyMode.TEXT,
        '[class*="result-count"]',
        '[class*="resultCount"]',
        '[class*="product-count"]',
        '[class*="productCount"]',
        '[class*="items-count"]',
    ),
    # ── cart ────────────────────────────────────────────────────────────────
    _intent(
        "cartItems", VerifyMode.COUNT,
        '[data-testid*="cart-item"]',
        '[class*="cart-item"]',
        '[class*="cartItem"]',
        '[class*="cart__item"]',
        '[class*="line-item"]',
        'tr[class*="cart"]',
    ),
    _intent(
        "cartTotal", VerifyMode.PRICE,
        '[data-testid*="total"]',
        '[class*="cart-total"]',
        '[class*="cartTotal"]',
        '[class*="order-total"]',
        '[class*="grand-total"]',
        '[class*="subtotal"]',
    ),
    _intent(
        "checkoutButton", VerifyMode.EXISTS,
        '[data-testid*="checkout"]',
        'button[name="checkout"]',
        'button[class*="checkout"]',
        'button[aria-label*="checkout" i]',
        'a[href*="checkout"]',
    ),
    _intent(
        "removeItem", VerifyMode.EXISTS,
        '[data-testid*="remove"]',
        '[aria-label*="remove" i]',
        'button[class*="remove"]',
        'a[class*="remove"]',
        'a[href*="/cart/change"]',
    ),
)

ECOMMERCE_TAXONOMY: dict[str, TaxonomyIntent] = {i.name: i for i in _INTENTS}

TAXONOMY_GROUPS: dict[str, list[str]] = {
    "global": ["searchBar", "cartIcon", "logo", "mainNavigation"],
    "pdp": [
        "productTitle",
        "price",
        "originalPrice",
        "discount",
        "rating",
        "reviewCount",
        "productImages",
        "addToCart",
        "buyNow",
        "sizeSelector",
        "colorSelector",
        "quantitySelector",
        "highlights",
        "specsSection",
        "reviewSection",
        "breadcrumb",
        "deliveryInfo",
    ],
    "plp": [
        "productCards",
        "productCardName",
        "productCardPrice",
        "productCardRating",
        "productCardImage",
        "filterSidebar",
        "sortDropdown",
        "pagination",
        "resultCount",
    ],
    "cart": ["cartItems", "cartTotal", "checkoutButton", "removeItem"],
}

_GROUP_FOR_PAGE_TYPE: dict[PageType, str] = {
    PageType.PRODUCT: "pdp",
    PageType.CATEGORY: "plp",
    PageType.SEARCH: "plp",
    PageType.CART: "cart",
}


def intents_for_page_type(page_type: PageType) -> list[str]:
    """Global intents plus the intents specific to the page type's group."""
    names = list(TAXONOMY_GROUPS["global"])
    group = _GROUP_FOR_PAGE_TYPE.get(page_type)
    if group:
        names.extend(n for n in TAXONOMY_GROUPS[group] if n not in names)
    return names


def verify_modes() -> dict[str, VerifyMode]:
    return {name: intent.verify_as for name, intent in ECOMMERCE_TAXONOMY.items()}
