"""Homepage bestseller sections mirrored into named collections."""

import logging
import time
from typing import List

from src import metrics
from src.config import settings
from src.db.models import Collection
from src.db.session import AsyncSessionLocal
from src.db.store import CatalogStore
from src.ingest.browser import new_browser_session
from src.ingest.extraction import ExtractionEngine, extraction_engine
from src.ingest.records import BestsellerSection
from src.ingest.results import ScrapeOutcome, ScrapeResult

logger = logging.getLogger(__name__)


class BestsellerAggregator:
    """One-shot extraction of homepage product groupings."""

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        browser_factory=new_browser_session,
        engine: ExtractionEngine = extraction_engine,
    ):
        self.session_factory = session_factory
        self.browser_factory = browser_factory
        self.engine = engine

    async def scrape_sections(self) -> ScrapeResult[List[BestsellerSection]]:
        url = f"{settings.site_base_url}/"
        start = time.monotonic()
        try:
            async with self.browser_factory(max_requests=1) as browser:
                logger.info("Scraping homepage bestseller sections")
                if not await browser.goto(url):
                    metrics.record_failure("bestsellers", "navigation")
                    return ScrapeResult.failure("navigation failed", url=url)
                await browser.dismiss_cookie_consent()
                html = await browser.content(
                    flag_hidden=", ".join(self.engine.rules.bestseller_cards.item_selectors)
                )
        except Exception as e:
            logger.error(f"Bestseller scrape failed: {e}", exc_info=True)
            metrics.record_failure("bestsellers", type(e).__name__)
            return ScrapeResult.failure(str(e), url=url)

        sections = self.engine.extract_bestseller_sections(html)
        outcome = ScrapeOutcome.OK if sections else ScrapeOutcome.PARTIAL
        metrics.record_page("bestsellers", outcome.value, time.monotonic() - start)
        return ScrapeResult(outcome, data=sections, url=url)

    async def get_bestsellers(self) -> List[Collection]:
        """
        Stored bestseller collections, scraping the homepage when none exist.

        Returns:
            Collections with their products loaded; each exposes a display `slug`
        """
        try:
            async with self.session_factory() as db:
                cached = await CatalogStore(db).collections_with_products()
            if cached:
                logger.info(f"Serving {len(cached)} bestseller collections from database")
                metrics.record_cache_hit("bestsellers")
                return cached

            result = await self.scrape_sections()
            if not result.data:
                logger.warning(f"No bestseller sections found: {result.error or 'empty page'}")
                return []

            async with self.session_factory() as db:
                store = CatalogStore(db)
                try:
                    for section in result.data:
                        collection = await store.upsert_collection_by_title(section.title)
                        stored = await store.add_collection_products(collection, section.products)
                        metrics.record_products_stored("bestsellers", stored)
                        logger.info(f"Saved '{section.title}' with {stored} products")
                    await store.commit()
                except Exception:
                    await db.rollback()
                    raise
                return await store.collections_with_products()
        except Exception as e:
            logger.error(f"Bestseller aggregation failed: {e}", exc_info=True)
            metrics.record_failure("bestsellers", type(e).__name__)
            return []


# Global aggregator instance
bestseller_aggregator = BestsellerAggregator()
