"""SQLAlchemy database models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Category(Base):
    """A node of the mirrored category tree, identified by its canonical URL."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    # Count of products already fetched for this category
    last_page: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    scraped_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    # Relationships
    parent: Mapped[Optional["Category"]] = relationship(
        "Category", remote_side="Category.id", back_populates="children"
    )
    children: Mapped[list["Category"]] = relationship(
        "Category", back_populates="parent", order_by="Category.id"
    )
    products: Mapped[list["Product"]] = relationship("Product", back_populates="category")


class Collection(Base):
    """Named product grouping (homepage bestseller sections)."""

    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # Relationships
    products: Mapped[list["Product"]] = relationship(
        "Product", back_populates="collection", order_by="Product.id"
    )

    @property
    def slug(self) -> str:
        """Display slug derived from the title."""
        from src.ingest.slugs import collection_slug

        return collection_slug(self.title)


class Product(Base):
    """Product mirrored from a listing, bestseller section or detail page."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="Unknown")
    price: Mapped[str] = mapped_column(Text, nullable=False)  # Free text, e.g. "£4.29"
    image: Mapped[str] = mapped_column(Text, nullable=False, default="")
    promo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Detail enrichment
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    condition: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    isbn: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    publication_year: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    specifications: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    recommendations: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    reviews: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    collection_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("collections.id", ondelete="SET NULL"), nullable=True
    )
    # "<lowercased title>|<price without whitespace>", unique within a category
    dedup_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    category: Mapped[Optional["Category"]] = relationship("Category", back_populates="products")
    collection: Mapped[Optional["Collection"]] = relationship(
        "Collection", back_populates="products"
    )

    __table_args__ = (
        UniqueConstraint("category_id", "dedup_key", name="uq_product_category_dedup"),
    )
