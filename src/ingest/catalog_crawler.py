"""Incremental, one-page-per-call category crawler."""

import logging
import time
from typing import List, Optional

from src import metrics
from src.config import settings
from src.db.models import Category, Product
from src.db.session import AsyncSessionLocal
from src.db.store import CatalogStore
from src.ingest import slugs
from src.ingest.browser import new_browser_session
from src.ingest.category_sync import CategoryTreeSynchronizer
from src.ingest.extraction import ExtractionEngine, extraction_engine
from src.ingest.records import ProductData
from src.ingest.results import ScrapeResult
from src.logging_config import get_logger
from src.worker.crawl_lock import CrawlLockManager, LockStatus, crawl_lock_manager

logger = logging.getLogger(__name__)

PAGE_PARAM = "shopify_products%5Bpage%5D"

# One listing page plus headroom for redirects
SEED_URLS_PER_CALL = 1
EXTRA_REQUESTS = 2


def page_url(category_url: str, current_count: int, page_size: int) -> str:
    """
    URL of the next unfetched listing page.

    Page 1 is the canonical URL itself; later pages are addressed by query
    parameter, numbered from the stored product count.
    """
    if current_count <= 0:
        return category_url
    page = current_count // page_size + 1
    separator = "&" if "?" in category_url else "?"
    return f"{category_url}{separator}{PAGE_PARAM}={page}"


class IncrementalCatalogCrawler:
    """
    Serves category listings from the store and extends them one page at a time.

    Each `fetch_category` call performs at most one listing-page fetch.
    Progress is resumable through the category's persisted offset.
    """

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        browser_factory=new_browser_session,
        engine: ExtractionEngine = extraction_engine,
        synchronizer: Optional[CategoryTreeSynchronizer] = None,
        lock_manager: Optional[CrawlLockManager] = None,
        page_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.browser_factory = browser_factory
        self.engine = engine
        self.synchronizer = synchronizer or CategoryTreeSynchronizer(
            session_factory=session_factory,
            browser_factory=browser_factory,
            engine=engine,
        )
        self.lock_manager = lock_manager or crawl_lock_manager
        self.page_size = page_size or settings.page_size

    async def find_category(self, slug: str) -> Optional[Category]:
        """Locate the category for a slug, resyncing the tree once on a miss."""
        clause = slugs.category_lookup_clause(slugs.resolve(slug))

        async with self.session_factory() as db:
            category = await CatalogStore(db).find_category(clause)
        if category is not None:
            return category

        logger.info(f"Category for '{slug}' not found; syncing navigation")
        await self.synchronizer.sync()

        async with self.session_factory() as db:
            return await CatalogStore(db).find_category(clause)

    async def scrape_page(self, url: str) -> ScrapeResult[List[ProductData]]:
        """Fetch one listing page and extract its product cards."""
        item_selector = ", ".join(self.engine.rules.listing_cards.item_selectors)
        start = time.monotonic()

        try:
            async with self.browser_factory(
                max_requests=SEED_URLS_PER_CALL + EXTRA_REQUESTS
            ) as browser:
                logger.info(f"Crawling {url}")
                if not await browser.goto(url):
                    metrics.record_failure("category", "navigation")
                    return ScrapeResult.failure("navigation failed", url=url)
                await browser.dismiss_cookie_consent()
                if not await browser.wait_for(
                    item_selector, timeout_ms=settings.grid_wait_timeout_ms
                ):
                    logger.warning("Product grid did not appear in time")
                html = await browser.content(flag_hidden=item_selector)
        except Exception as e:
            logger.error(f"Listing scrape failed for {url}: {e}", exc_info=True)
            metrics.record_failure("category", type(e).__name__)
            return ScrapeResult.failure(str(e), url=url)

        cards = self.engine.extract_cards(html)
        if cards:
            result = ScrapeResult.success(cards, url=url)
        else:
            result = ScrapeResult.partial(cards, url=url, error="no product cards found")
        metrics.record_page("category", result.outcome.value, time.monotonic() - start)
        logger.info(f"Found {len(cards)} products on {url}")
        return result

    async def _crawl_next_page(self, category_id: int, load_more: bool) -> List[Product]:
        async with self.session_factory() as db:
            store = CatalogStore(db)
            current_count = await store.count_products(category_id)
            if not load_more and current_count > 0:
                # Filled by a concurrent crawl while we waited
                return await store.products_for_category(category_id)
            category = await db.get(Category, category_id)
            target = page_url(category.url, current_count, self.page_size)

        result = await self.scrape_page(target)

        async with self.session_factory() as db:
            store = CatalogStore(db)
            if result.data:
                category = await db.get(Category, category_id)
                inserted = await store.append_page(category, current_count, result.data)
                metrics.record_products_stored("category", inserted)
                metrics.record_category_offset(category_id, category.last_page)
                get_logger(__name__, category_id=category_id, url=target).info(
                    f"Stored {inserted} new products for '{category.title}' "
                    f"(offset {category.last_page})"
                )
            return await store.products_for_category(category_id)

    async def fetch_category(self, slug: str, load_more: bool = False) -> List[Product]:
        """
        Stored products for a category, crawling one more page when needed.

        Args:
            slug: Public category slug or raw URL fragment
            load_more: Fetch the next page even when products are cached

        Returns:
            All stored products for the category; empty when it cannot be found
        """
        try:
            category = await self.find_category(slug)
            if category is None:
                logger.warning(f"No category matches '{slug}'")
                return []

            if not load_more:
                async with self.session_factory() as db:
                    store = CatalogStore(db)
                    if await store.count_products(category.id) > 0:
                        logger.info(f"Serving '{category.title}' from database")
                        metrics.record_cache_hit("category")
                        return await store.products_for_category(category.id)

            async with self.lock_manager.hold(category.id) as status:
                if status == LockStatus.BUSY:
                    logger.warning(
                        f"Crawl already running for '{category.title}'; serving stored products"
                    )
                    async with self.session_factory() as db:
                        return await CatalogStore(db).products_for_category(category.id)
                return await self._crawl_next_page(category.id, load_more)
        except Exception as e:
            logger.error(f"Category fetch failed for '{slug}': {e}", exc_info=True)
            metrics.record_failure("category", type(e).__name__)
            return []


# Global crawler instance
catalog_crawler = IncrementalCatalogCrawler()
