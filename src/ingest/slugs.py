"""Public category slugs and their canonical URL path fragments."""

import re
from types import MappingProxyType
from typing import Mapping

from sqlalchemy import and_, not_
from sqlalchemy.sql.elements import ColumnElement

from src.db.models import Category

# Slugs the storefront has always exposed
_EXISTING_SLUGS = {
    # Core
    "all-books": "collections/all-books",
    "new-arrivals": "collections/new-arrivals",
    "bestsellers": "collections/bestsellers",
    "featured-books": "collections/featured-books",

    # Non-fiction
    "non-fiction": "collections/non-fiction-books",
    "biography": "collections/biography-and-memoir-books",
    "history": "collections/history-books",
    "self-help": "collections/self-help-books",
    "business-economics": "collections/business-and-economics-books",
    "health-fitness": "collections/health-and-fitness-books",
    "science": "collections/science-books",
    "technology": "collections/technology-books",
    "philosophy": "collections/philosophy-books",
    "psychology": "collections/psychology-books",

    # Academic
    "engineering": "collections/engineering-books",
    "medical": "collections/medical-books",
    "law": "collections/law-books",
    "commerce": "collections/commerce-books",
    "arts": "collections/arts-books",
    "competitive-exams": "collections/competitive-exams-books",

    # Media
    "music": "collections/music",
    "movies": "collections/movies",
    "stationery": "collections/stationery",

    # Rare
    "rare-books": "collections/rare-books",
}

# Fiction, children's and rare sub-collections
_GENRE_SLUGS = {
    # Fiction
    "fiction-books": "collections/fiction-books",
    "crime-mystery": "collections/crime-and-mystery-books",
    "fantasy": "collections/fantasy-fiction-books",
    "science-fiction": "collections/science-fiction-books",
    "thriller-suspense": "collections/thriller-and-suspense-books",
    "romance": "collections/romance-books",
    "classic-fiction": "collections/classic-fiction-books",
    "historical-fiction": "collections/historical-fiction-books",
    "horror-ghost": "collections/horror-books",
    "graphic-novels": "collections/graphic-novels-and-comic-books",

    # Children
    "childrens-books": "collections/childrens-books",
    "childrens-fiction": "collections/childrens-fiction-books",
    "childrens-non-fiction": "collections/childrens-non-fiction-books",
    "activity-early-learning": "collections/childrens-picture-and-activity-books",
    "baby-toddler": "pages/baby-and-toddler-books",
    "ages-5-8": "pages/childrens-books-ages-5-8",
    "ages-9-12": "pages/childrens-books-ages-9-12",
    "teenage-young-adult": "pages/teenage-and-young-adult-books",

    # Rare & collectible
    "rare-fiction-books": "collections/rare-fiction-books",
    "rare-sci-fi": "collections/rare-sci-fi-books",
    "rare-fantasy": "collections/rare-fantasy-books",
    "rare-horror": "collections/rare-horror-books",
    "rare-romance": "collections/rare-romance-books",
    "rare-biography": "collections/rare-biography-true-story-books",
    "rare-art": "collections/rare-art-fashion-photography-books",
    "rare-medicine": "collections/rare-medicine-books",
    "rare-ephemera": "collections/rare-ephemera",
}

SLUG_MAPPING: Mapping[str, str] = MappingProxyType({**_EXISTING_SLUGS, **_GENRE_SLUGS})

FICTION_ROOT_FRAGMENT = "collections/fiction-books"
FICTION_MATCH = "fiction-books"
NON_FICTION_FRAGMENT = "non-fiction"

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def resolve(slug: str) -> str:
    """Map a public slug to its search fragment; unknown slugs pass through."""
    return SLUG_MAPPING.get(slug, slug)


def category_lookup_clause(fragment: str) -> ColumnElement[bool]:
    """
    WHERE clause locating the category for a search fragment.

    The fiction root must not absorb non-fiction URLs that merely contain
    "fiction-books".
    """
    if fragment == FICTION_ROOT_FRAGMENT:
        return and_(
            Category.url.contains(FICTION_MATCH, autoescape=True),
            not_(Category.url.contains(NON_FICTION_FRAGMENT, autoescape=True)),
        )
    return Category.url.contains(fragment, autoescape=True)


def collection_slug(title: str) -> str:
    """Display slug for a bestseller collection title."""
    t = (title or "").lower()
    if "non-fiction" in t:
        return "non-fiction-books"
    if "fiction" in t:
        return "fiction-books"
    if "children" in t:
        return "childrens-books"
    if "rare" in t:
        return "rare-books"
    return _NON_SLUG_RE.sub("-", t)
