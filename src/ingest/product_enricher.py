"""Query-driven product lookup and deep product-page extraction."""

import logging
import time
from typing import Optional
from urllib.parse import quote, urljoin

from src import metrics
from src.config import settings
from src.db.session import AsyncSessionLocal
from src.db.store import CatalogStore
from src.ingest.browser import new_browser_session
from src.ingest.extraction import ExtractionEngine, extraction_engine
from src.ingest.records import ProductDetails
from src.ingest.results import ScrapeOutcome, ScrapeResult

logger = logging.getLogger(__name__)


class ProductDetailEnricher:
    """Searches the storefront for a title and deep-scrapes the best match."""

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        browser_factory=new_browser_session,
        engine: ExtractionEngine = extraction_engine,
    ):
        self.session_factory = session_factory
        self.browser_factory = browser_factory
        self.engine = engine

    def search_url(self, query: str) -> str:
        return f"{settings.site_root_url}/search?q={quote(query)}"

    async def scrape_details(self, query: str) -> ScrapeResult[ProductDetails]:
        """
        Search for `query`, follow the first matching result and deep-extract it.

        The first result anchor in document order whose text equals, contains
        or is contained by the query is followed; there is no ranking.
        """
        rules = self.engine.rules
        url = self.search_url(query)
        start = time.monotonic()

        try:
            async with self.browser_factory(max_requests=settings.detail_max_requests) as browser:
                logger.info(f"Searching storefront for '{query}'")
                if not await browser.goto(url):
                    metrics.record_failure("search", "navigation")
                    return ScrapeResult.failure("search navigation failed", url=url)
                await browser.dismiss_cookie_consent()
                await browser.wait_for_idle()
                await browser.wait_for(
                    rules.search_result_wait, timeout_ms=settings.search_wait_timeout_ms
                )

                href = self.engine.find_product_href(await browser.content(), query)
                if not href:
                    logger.info(f"No search result matches '{query}'")
                    metrics.record_page("search", ScrapeOutcome.FAILED.value, time.monotonic() - start)
                    return ScrapeResult.failure("no matching result", url=url)

                product_url = urljoin(f"{settings.site_base_url}/", href)
                logger.info(f"Deep scraping {product_url}")
                if not await browser.goto(product_url):
                    metrics.record_failure("search", "navigation")
                    return ScrapeResult.failure("product navigation failed", url=product_url)
                await browser.dismiss_cookie_consent()
                if not await browser.wait_for(
                    rules.accordion, timeout_ms=settings.accordion_wait_timeout_ms
                ):
                    logger.debug("Accordion not found; extracting from static markup")
                html = await browser.content()
        except Exception as e:
            logger.error(f"Detail scrape failed for '{query}': {e}", exc_info=True)
            metrics.record_failure("search", type(e).__name__)
            return ScrapeResult.failure(str(e), url=url)

        details = self.engine.deep_extract(html)
        details.url = product_url
        details.title = details.specifications.get("Title") or query

        outcome = ScrapeOutcome.OK if details.summary else ScrapeOutcome.PARTIAL
        metrics.record_page("search", outcome.value, time.monotonic() - start)
        return ScrapeResult(outcome, data=details, url=product_url)

    async def search_and_scrape(self, query: str) -> Optional[ProductDetails]:
        """
        Enriched details for the product best matching `query`.

        A stored product whose title contains the query and that already has a
        summary is returned without any navigation.

        Returns:
            ProductDetails, or None when nothing matched or the scrape failed
        """
        query = (query or "").strip()
        if not query:
            return None

        try:
            async with self.session_factory() as db:
                store = CatalogStore(db)
                cached = await store.find_product_by_title(query, with_summary=True)
                if cached is not None:
                    logger.info(f"Serving details for '{query}' from database")
                    metrics.record_cache_hit("search")
                    return ProductDetails.from_product(cached)
                existing = await store.find_product_by_title(query)
                existing_id = existing.id if existing is not None else None

            result = await self.scrape_details(query)
            if not result.ok or result.data is None:
                return None
            details = result.data

            async with self.session_factory() as db:
                product = await CatalogStore(db).save_product_details(
                    details, fallback_title=query, product_id=existing_id
                )
                details.product_id = product.id
            metrics.record_products_stored("search", 1)
            return details
        except Exception as e:
            logger.error(f"Search and scrape failed for '{query}': {e}", exc_info=True)
            metrics.record_failure("search", type(e).__name__)
            return None


# Global enricher instance
product_enricher = ProductDetailEnricher()
