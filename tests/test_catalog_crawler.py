"""Tests for incremental category crawling."""

import pytest

from src.db.models import Category
from src.db.store import CatalogStore
from src.ingest import slugs
from src.ingest.catalog_crawler import PAGE_PARAM, IncrementalCatalogCrawler, page_url
from tests.fakes import FICTION_URL, NON_FICTION_URL, ROOT, BusyLockManager, listing_html

PAGE_2 = f"{FICTION_URL}?{PAGE_PARAM}=2"


def make_crawler(session_factory, browser_factory, lock_manager):
    return IncrementalCatalogCrawler(
        session_factory=session_factory,
        browser_factory=browser_factory,
        lock_manager=lock_manager,
        page_size=40,
    )


async def stored_category(session_factory, url=FICTION_URL) -> Category:
    async with session_factory() as db:
        return await CatalogStore(db).find_category(Category.url == url)


class TestPageUrl:
    def test_first_page_is_canonical_url(self):
        assert page_url(FICTION_URL, 0, 40) == FICTION_URL

    def test_next_page_from_count(self):
        assert page_url(FICTION_URL, 40, 40) == PAGE_2
        assert page_url(FICTION_URL, 79, 40) == f"{FICTION_URL}?{PAGE_PARAM}=2"
        assert page_url(FICTION_URL, 80, 40) == f"{FICTION_URL}?{PAGE_PARAM}=3"

    def test_existing_query_string_extended(self):
        assert page_url(f"{FICTION_URL}?sort=new", 40, 40) == f"{FICTION_URL}?sort=new&{PAGE_PARAM}=2"


@pytest.mark.asyncio
async def test_first_fetch_syncs_tree_and_crawls_page_one(session_factory, browser_factory, unlocked):
    browser_factory.pages[FICTION_URL] = listing_html(12)
    crawler = make_crawler(session_factory, browser_factory, unlocked)

    products = await crawler.fetch_category("fiction-books")

    assert len(products) == 12
    assert browser_factory.visited == [ROOT, FICTION_URL]
    category = await stored_category(session_factory)
    assert category.last_page == 12
    assert products[0].title == "Book 1"
    assert products[0].author == "Author 1"
    assert products[0].price == "£3.49"


@pytest.mark.asyncio
async def test_cached_products_served_without_navigation(session_factory, browser_factory, unlocked):
    browser_factory.pages[FICTION_URL] = listing_html(5)
    crawler = make_crawler(session_factory, browser_factory, unlocked)

    await crawler.fetch_category("fiction-books")
    visited = list(browser_factory.visited)
    products = await crawler.fetch_category("fiction-books")

    assert len(products) == 5
    assert browser_factory.visited == visited


@pytest.mark.asyncio
async def test_load_more_fetches_next_page(session_factory, browser_factory, unlocked):
    browser_factory.pages[FICTION_URL] = listing_html(40)
    browser_factory.pages[PAGE_2] = listing_html(10, start=41)
    crawler = make_crawler(session_factory, browser_factory, unlocked)

    await crawler.fetch_category("fiction-books")
    products = await crawler.fetch_category("fiction-books", load_more=True)

    assert len(products) == 50
    assert browser_factory.visited[-1] == PAGE_2
    category = await stored_category(session_factory)
    assert category.last_page == 50


@pytest.mark.asyncio
async def test_overlapping_pages_do_not_duplicate(session_factory, browser_factory, unlocked):
    browser_factory.pages[FICTION_URL] = listing_html(40)
    # Books 35-44: six already stored from page one
    browser_factory.pages[PAGE_2] = listing_html(10, start=35)
    crawler = make_crawler(session_factory, browser_factory, unlocked)

    await crawler.fetch_category("fiction-books")
    products = await crawler.fetch_category("fiction-books", load_more=True)
    assert len(products) == 44
    offsets = [(await stored_category(session_factory)).last_page]

    # Identical markup again inserts nothing and never moves the offset back
    products = await crawler.fetch_category("fiction-books", load_more=True)
    offsets.append((await stored_category(session_factory)).last_page)

    assert len(products) == 44
    assert len({(p.title.lower(), p.price) for p in products}) == 44
    assert offsets == [44, 44]


@pytest.mark.asyncio
async def test_failed_navigation_stores_nothing(session_factory, browser_factory, unlocked):
    crawler = make_crawler(session_factory, browser_factory, unlocked)

    products = await crawler.fetch_category("fiction-books")

    assert products == []
    assert (await stored_category(session_factory)).last_page == 0


@pytest.mark.asyncio
async def test_unknown_slug_returns_empty(session_factory, browser_factory, unlocked):
    crawler = make_crawler(session_factory, browser_factory, unlocked)

    assert await crawler.fetch_category("no-such-shelf") == []
    assert browser_factory.visited == [ROOT]


@pytest.mark.asyncio
async def test_busy_lock_serves_stored_products(session_factory, browser_factory, unlocked):
    browser_factory.pages[FICTION_URL] = listing_html(3)
    await make_crawler(session_factory, browser_factory, unlocked).fetch_category("fiction-books")
    visited = list(browser_factory.visited)

    crawler = make_crawler(session_factory, browser_factory, BusyLockManager())
    products = await crawler.fetch_category("fiction-books", load_more=True)

    assert len(products) == 3
    assert browser_factory.visited == visited


@pytest.mark.asyncio
async def test_fiction_root_lookup_skips_non_fiction(session_factory):
    async with session_factory() as db:
        store = CatalogStore(db)
        await store.upsert_category_by_url(NON_FICTION_URL, "Non-Fiction Books")
        await store.upsert_category_by_url(f"{ROOT}/collections/non-fiction-books-sale", "Sale")
        await store.upsert_category_by_url(FICTION_URL, "Fiction Books")
        await store.commit()

        clause = slugs.category_lookup_clause(slugs.resolve("fiction-books"))
        category = await store.find_category(clause)

    assert category.url == FICTION_URL


@pytest.mark.asyncio
@pytest.mark.parametrize("slug", ["%", "_"])
async def test_wildcard_slug_matches_no_category(session_factory, slug):
    async with session_factory() as db:
        store = CatalogStore(db)
        await store.upsert_category_by_url(f"{ROOT}/collections/history-books", "History")
        await store.commit()

        category = await store.find_category(slugs.category_lookup_clause(slugs.resolve(slug)))

    assert category is None
