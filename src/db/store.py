"""Catalog persistence operations over one async session."""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from src.db.models import Category, Collection, Product
from src.ingest.records import UNKNOWN_AUTHOR, ProductData, ProductDetails

logger = logging.getLogger(__name__)

_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class CatalogStore:
    """
    Catalog reads and writes.

    Writes that must land together (one crawled page) are committed in a
    single transaction; every other write commits through `commit()`.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self):
        await self.db.commit()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def upsert_category_by_url(
        self,
        url: str,
        title: str,
        parent_id: Optional[int] = None,
        set_parent: bool = False,
    ) -> Category:
        """Create the category for `url` or update its title (and parent when asked)."""
        result = await self.db.execute(select(Category).where(Category.url == url))
        category = result.scalar_one_or_none()

        if category is None:
            category = Category(title=title, url=url, parent_id=parent_id, last_page=0)
            self.db.add(category)
        else:
            category.title = title
            category.scraped_at = datetime.utcnow()
            if set_parent:
                category.parent_id = parent_id

        await self.db.flush()
        return category

    async def find_category(self, clause: ColumnElement[bool]) -> Optional[Category]:
        result = await self.db.execute(
            select(Category).where(clause).order_by(Category.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def root_categories(self) -> List[Category]:
        """Top-level categories with their children loaded, oldest first."""
        result = await self.db.execute(
            select(Category)
            .where(Category.parent_id.is_(None))
            .options(selectinload(Category.children))
            .order_by(Category.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_products(self, category_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id)
        )
        return int(result.scalar_one())

    async def products_for_category(self, category_id: int) -> List[Product]:
        result = await self.db.execute(
            select(Product).where(Product.category_id == category_id).order_by(Product.id)
        )
        return list(result.scalars().all())

    async def _existing_keys(self, category_id: int, keys: Iterable[str]) -> set[str]:
        keys = list(keys)
        if not keys:
            return set()
        result = await self.db.execute(
            select(Product.dedup_key).where(
                Product.category_id == category_id,
                Product.dedup_key.in_(keys),
            )
        )
        return set(result.scalars().all())

    async def _insert_skip_duplicates(self, rows: List[dict]) -> int:
        """Bulk insert that skips (category_id, dedup_key) conflicts. Returns rows inserted."""
        if not rows:
            return 0

        dialect = self.db.get_bind().dialect.name
        conflict_insert = _CONFLICT_INSERTS.get(dialect)
        if conflict_insert is not None:
            stmt = (
                conflict_insert(Product)
                .values(rows)
                .on_conflict_do_nothing(index_elements=["category_id", "dedup_key"])
                .returning(Product.id)
            )
        else:
            stmt = insert(Product).values(rows).returning(Product.id)

        result = await self.db.execute(stmt)
        return len(result.scalars().all())

    async def append_page(
        self,
        category: Category,
        current_count: int,
        products: Sequence[ProductData],
    ) -> int:
        """
        Insert a crawled page and advance the category offset atomically.

        Products already stored for the category are skipped. Either all
        inserts and the offset update commit, or none do.

        Returns:
            Number of products actually inserted
        """
        try:
            known = await self._existing_keys(category.id, (p.key for p in products))
            rows = []
            for product in products:
                if product.key in known:
                    continue
                known.add(product.key)
                rows.append({
                    "title": product.title,
                    "author": product.author or UNKNOWN_AUTHOR,
                    "price": product.price,
                    "image": product.image or "",
                    "promo": product.promo,
                    "category_id": category.id,
                    "dedup_key": product.key,
                })

            inserted = await self._insert_skip_duplicates(rows)
            category.last_page = max(category.last_page or 0, current_count + inserted)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return inserted

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def upsert_collection_by_title(self, title: str) -> Collection:
        result = await self.db.execute(select(Collection).where(Collection.title == title))
        collection = result.scalar_one_or_none()
        if collection is None:
            collection = Collection(title=title)
            self.db.add(collection)
            await self.db.flush()
        return collection

    async def add_collection_products(
        self, collection: Collection, products: Sequence[ProductData]
    ) -> int:
        for product in products:
            self.db.add(Product(
                title=product.title,
                author=product.author or UNKNOWN_AUTHOR,
                price=product.price,
                image=product.image or "",
                promo=product.promo,
                collection_id=collection.id,
            ))
        await self.db.flush()
        return len(products)

    async def collections_with_products(self) -> List[Collection]:
        result = await self.db.execute(
            select(Collection)
            .options(selectinload(Collection.products))
            .order_by(Collection.id)
            .execution_options(populate_existing=True)
        )
        return [c for c in result.scalars().all() if c.products]

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def find_product_by_title(
        self, fragment: str, with_summary: bool = False
    ) -> Optional[Product]:
        """First product whose title contains `fragment`."""
        stmt = select(Product).where(Product.title.contains(fragment, autoescape=True))
        if with_summary:
            stmt = stmt.where(Product.summary.is_not(None), Product.summary != "")
        result = await self.db.execute(stmt.order_by(Product.id).limit(1))
        return result.scalar_one_or_none()

    async def save_product_details(
        self,
        details: ProductDetails,
        fallback_title: str,
        product_id: Optional[int] = None,
    ) -> Product:
        """Update an existing product with enrichment data, or create a fallback record."""
        product = await self.db.get(Product, product_id) if product_id is not None else None
        if product is None:
            product = Product(
                title=details.title or fallback_title,
                author=details.specifications.get("Author") or UNKNOWN_AUTHOR,
                price="0.00",
                image="",
            )
            self.db.add(product)

        product.summary = details.summary
        product.specifications = dict(details.specifications)
        product.recommendations = [r.to_dict() for r in details.recommendations]
        product.reviews = list(details.reviews)
        product.condition = details.condition
        product.url = details.url or product.url
        product.isbn = details.specifications.get("ISBN 13") or product.isbn
        product.publication_year = (
            details.specifications.get("Year published") or product.publication_year
        )

        await self.db.commit()
        return product

    async def products_by_ids(self, ids: Sequence[int]) -> List[Product]:
        if not ids:
            return []
        result = await self.db.execute(select(Product).where(Product.id.in_(list(ids))))
        return list(result.scalars().all())
