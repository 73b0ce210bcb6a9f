"""FastAPI dependencies."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.session import get_db
from src.ingest.bestsellers import BestsellerAggregator, bestseller_aggregator
from src.ingest.catalog_crawler import IncrementalCatalogCrawler, catalog_crawler
from src.ingest.category_sync import CategoryTreeSynchronizer, category_synchronizer
from src.ingest.product_enricher import ProductDetailEnricher, product_enricher


async def get_database() -> AsyncSession:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


def get_category_synchronizer() -> CategoryTreeSynchronizer:
    return category_synchronizer


def get_catalog_crawler() -> IncrementalCatalogCrawler:
    return catalog_crawler


def get_bestseller_aggregator() -> BestsellerAggregator:
    return bestseller_aggregator


def get_product_enricher() -> ProductDetailEnricher:
    return product_enricher
