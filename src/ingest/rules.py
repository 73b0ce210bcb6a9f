"""Versioned selector and regex tables driving the extraction engine.

Rules are plain data so they can be swapped or exercised against fixture
markup without a browser. Bump RULES_VERSION when the source markup changes.
"""

import re
from dataclasses import dataclass, field
from typing import Pattern

RULES_VERSION = "v1"


@dataclass(frozen=True)
class CardRules:
    """Selectors for one kind of product tile."""

    item_selectors: tuple[str, ...]
    title_selectors: tuple[str, ...]
    price_selectors: tuple[str, ...]
    author_selectors: tuple[str, ...] = ()
    promo_selectors: tuple[str, ...] = ()
    image_selector: str = "img"


@dataclass(frozen=True)
class SpecPattern:
    """Regex heuristic for one specification key; group 1 is the value."""

    key: str
    pattern: Pattern[str]
    digits_only: bool = False
    required_length: int | None = None


@dataclass(frozen=True)
class ExtractionRules:
    """All selectors and patterns used against the source site's markup."""

    version: str

    # Cookie consent (OneTrust)
    cookie_banner: str
    cookie_reject: str
    cookie_accept: str

    # Listing pages
    listing_cards: CardRules
    price_regex: Pattern[str]
    background_image_regex: Pattern[str]

    # Navigation
    nav_anchor: str
    nav_parent_attr: str
    nav_child_attr: str

    # Homepage bestsellers
    bestseller_containers: str
    bestseller_heading: str
    bestseller_cards: CardRules

    # Search results
    search_result_wait: str
    search_result_anchors: str

    # Product page
    accordion: str
    accordion_heading: str
    accordion_panel: str
    summary_fallbacks: tuple[str, ...]
    condition: str
    spec_rows: str
    spec_row_labels: tuple[str, ...]
    spec_row_values: tuple[str, ...]
    title_selectors: tuple[str, ...]
    author_selectors: tuple[str, ...]
    spec_patterns: tuple[SpecPattern, ...]
    recommendation_cards: CardRules

    review_min_line_length: int = 20
    review_min_panel_length: int = 30
    hidden_selectors: tuple[str, ...] = field(default=("[data-zero-size]",))


BINDING_TYPES = (
    "Mass Market Paperback",
    "Trade Paperback",
    "Paperback",
    "Hardback",
    "Hardcover",
    "Leather",
)

RULES_V1 = ExtractionRules(
    version=RULES_VERSION,
    cookie_banner=".ot-sdk-container, #onetrust-banner-sdk",
    cookie_reject="#onetrust-reject-all-handler",
    cookie_accept="#onetrust-accept-btn-handler",
    listing_cards=CardRules(
        item_selectors=(
            ".card",
            ".grid-item",
            ".product-item",
            "div[data-product-id]",
            ".product",
            ".product-card",
        ),
        title_selectors=("h3", ".card__heading a", ".title", ".item-title", "a[title]"),
        price_selectors=(".price", ".price-item", ".item-price"),
        author_selectors=(".author", ".item-author"),
    ),
    price_regex=re.compile(r"[£$]\s*[0-9]+[.,]?[0-9]*"),
    background_image_regex=re.compile(r"background-image\s*:\s*url\(\s*[\"']?(.*?)[\"']?\s*\)", re.I),
    nav_anchor="a[data-menu_category]",
    nav_parent_attr="data-menu_category",
    nav_child_attr="data-menu_subcategory",
    bestseller_containers=".algolia-related-products-container, .related-products, .collection-bestsellers",
    bestseller_heading="h2",
    bestseller_cards=CardRules(
        item_selectors=(".card", ".product-item", ".grid-item", ".card__inner"),
        title_selectors=("h3", ".card__heading a", "a", ".title", ".item-title"),
        price_selectors=(".price", ".price-item", ".item-price"),
        author_selectors=(".author",),
        promo_selectors=(".pill",),
    ),
    search_result_wait="h3.card__heading a, .card a, .product-item a",
    search_result_anchors="h3.card__heading a, .card a, .product-item a, .grid-item a",
    accordion=".outer-accordion",
    accordion_heading=".accordion-head",
    accordion_panel=".panel",
    summary_fallbacks=(
        ".summary-side-panel",
        ".product__description",
        "#description",
        ".product-description__text",
        ".description",
    ),
    condition="[data-condition], .condition",
    spec_rows=(
        ".additional-info-table tr, .additional-info-table .product-details__item, "
        ".product-details__item, .product-info__item"
    ),
    spec_row_labels=("th", ".label", "dt", ".spec-label"),
    spec_row_values=("td", ".value", "dd", ".spec-value"),
    title_selectors=(
        "h1.product__title",
        "h1.product-title",
        ".product-title",
        ".product__heading",
        ".product__title h1",
    ),
    author_selectors=(".author", ".product-author", ".byline", ".item-author", ".product__author"),
    spec_patterns=(
        SpecPattern("SKU", re.compile(r"\bSKU\b\s*[:#]?\s*([A-Z0-9][A-Z0-9\-]*)", re.I)),
        SpecPattern(
            "ISBN 13",
            re.compile(r"ISBN[\s\-]*13[:\s]*([0-9][0-9\-]{12,16})", re.I),
            digits_only=True,
            required_length=13,
        ),
        SpecPattern(
            "ISBN 13",
            re.compile(r"ISBN[:\s]*(97[89][0-9\-]{10,14})", re.I),
            digits_only=True,
            required_length=13,
        ),
        SpecPattern(
            "ISBN 10",
            re.compile(r"ISBN[\s\-]*10[:\s]*([0-9][0-9Xx\-]{9,12})", re.I),
            digits_only=True,
            required_length=10,
        ),
        SpecPattern(
            "ISBN 10",
            re.compile(r"ISBN[:\s]*([0-9][0-9Xx\-]{9,12})\b", re.I),
            digits_only=True,
            required_length=10,
        ),
        SpecPattern("Year published", re.compile(r"(?:Year published|Published)\s*[:\s]*([0-9]{4})", re.I)),
        SpecPattern("Number of pages", re.compile(r"([0-9]{1,4})\s+pages?\b", re.I)),
        SpecPattern(
            "Binding Type",
            re.compile(r"\b(" + "|".join(BINDING_TYPES) + r")\b", re.I),
        ),
        SpecPattern("Cover note", re.compile(r"Cover note[:\s]*([^\n]+)", re.I)),
        SpecPattern("Note", re.compile(r"(?<!Cover )\bNote\b[:\s]*([^\n]+)", re.I)),
    ),
    recommendation_cards=CardRules(
        item_selectors=(".algolia-related-products-container .card",),
        title_selectors=("h3", ".card__heading", ".title"),
        price_selectors=(".price", ".price-item"),
    ),
)

# Keys every deep extraction result carries, possibly empty
REQUESTED_SPEC_KEYS = (
    "SKU",
    "ISBN 13",
    "ISBN 10",
    "Title",
    "Author",
    "Condition",
    "Binding Type",
    "Publisher",
    "Year published",
    "Number of pages",
    "Cover note",
    "Note",
)
