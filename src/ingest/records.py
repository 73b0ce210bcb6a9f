"""Intermediate extraction records and the domain shapes they normalize into."""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

UNKNOWN_AUTHOR = "Unknown"
DEFAULT_CONDITION = "Pre-owned"

_WS_RE = re.compile(r"\s+")


def norm_text(value: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not value:
        return ""
    return _WS_RE.sub(" ", value.replace("\r", "")).strip()


def dedup_key(title: str, price: str) -> str:
    """Soft identity of a product within one category."""
    return f"{(title or '').strip().lower()}|{_WS_RE.sub('', price or '')}"


@dataclass
class ProductData:
    """A normalized product tile."""

    title: str
    price: str
    image: str = ""
    author: str = UNKNOWN_AUTHOR
    promo: Optional[str] = None

    @property
    def key(self) -> str:
        return dedup_key(self.title, self.price)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RawCard:
    """One product tile as read from markup; every field may be missing."""

    title: Optional[str] = None
    price: Optional[str] = None
    author: Optional[str] = None
    image: Optional[str] = None
    promo: Optional[str] = None

    def normalize(self) -> Optional[ProductData]:
        """Return a ProductData, or None when the card has no usable title or price."""
        title = norm_text(self.title)
        price = norm_text(self.price)
        if not title or not price:
            return None
        return ProductData(
            title=title,
            price=price,
            image=(self.image or "").strip(),
            author=norm_text(self.author) or UNKNOWN_AUTHOR,
            promo=norm_text(self.promo) or None,
        )


@dataclass
class NavLink:
    """A normalized navigation anchor."""

    parent_name: str
    url: str
    child_name: Optional[str] = None


@dataclass
class RawNavLink:
    """A navigation anchor carrying parent/child category attributes."""

    parent_name: Optional[str] = None
    child_name: Optional[str] = None
    href: Optional[str] = None

    def normalize(self) -> Optional[NavLink]:
        parent = (self.parent_name or "").strip()
        href = (self.href or "").strip()
        if not parent or not href:
            return None
        return NavLink(
            parent_name=parent,
            child_name=(self.child_name or "").strip() or None,
            url=href,
        )


@dataclass
class RawSpecification:
    """A label/value pair read from a specification table or definition list."""

    label: Optional[str] = None
    value: Optional[str] = None

    def normalize(self) -> Optional[tuple[str, str]]:
        label = norm_text(self.label).replace(":", "", 1).strip()
        value = norm_text(self.value)
        if not label or not value:
            return None
        return label, value


@dataclass
class AccordionSection:
    """A collapsible product-page section."""

    heading: str
    text: str
    lines: list[str] = field(default_factory=list)


@dataclass
class BestsellerSection:
    """A homepage product grouping as scraped, before persistence."""

    title: str
    products: list[ProductData] = field(default_factory=list)


@dataclass
class ProductDetails:
    """Deep-extracted product page data."""

    summary: str = ""
    condition: str = DEFAULT_CONDITION
    specifications: dict[str, str] = field(default_factory=dict)
    recommendations: list[ProductData] = field(default_factory=list)
    reviews: list[dict[str, str]] = field(default_factory=list)
    title: Optional[str] = None
    url: Optional[str] = None
    product_id: Optional[int] = None

    @classmethod
    def from_product(cls, product) -> "ProductDetails":
        """Rebuild details from a stored, previously enriched product."""
        recommendations = []
        for item in product.recommendations or []:
            try:
                recommendations.append(ProductData(**item))
            except TypeError:
                continue
        return cls(
            summary=product.summary or "",
            condition=product.condition or DEFAULT_CONDITION,
            specifications=dict(product.specifications or {}),
            recommendations=recommendations,
            reviews=list(product.reviews or []),
            title=product.title,
            url=product.url,
            product_id=product.id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
            "condition": self.condition,
            "specifications": dict(self.specifications),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "reviews": list(self.reviews),
        }
