"""Tests for search-driven product enrichment."""

import pytest
from sqlalchemy import select

from src.config import settings
from src.db.models import Product
from src.ingest.product_enricher import ProductDetailEnricher
from src.ingest.rules import REQUESTED_SPEC_KEYS
from tests.fakes import ROOT, FakeBrowserFactory

SEARCH_URL = f"{ROOT}/search?q=Dune"
PRODUCT_URL = f"{settings.site_base_url}/en-gb/products/dune-9780340960196"

SEARCH_RESULTS = """
<html><body>
<div class="card"><h3 class="card__heading"><a href="/en-gb/products/emma">Emma</a></h3></div>
<div class="card"><h3 class="card__heading"><a href="/en-gb/products/dune-9780340960196">Dune</a></h3></div>
</body></html>
"""

PRODUCT_PAGE = """
<html><body>
<h1 class="product__title">Dune</h1>
<div class="outer-accordion"><div class="accordion-head">Summary</div>
<div class="panel"><p>Set on the desert planet Arrakis, Dune is the story of Paul Atreides.</p></div></div>
<table class="additional-info-table">
<tr><th>ISBN 13</th><td>9780340960196</td></tr>
<tr><th>Year published</th><td>2006</td></tr>
</table>
</body></html>
"""


def make_browser():
    return FakeBrowserFactory({SEARCH_URL: SEARCH_RESULTS, PRODUCT_URL: PRODUCT_PAGE})


async def all_products(session_factory):
    async with session_factory() as db:
        return list((await db.execute(select(Product))).scalars().all())


@pytest.mark.asyncio
async def test_search_scrapes_and_stores_details(session_factory):
    browser = make_browser()
    enricher = ProductDetailEnricher(session_factory, browser)

    details = await enricher.search_and_scrape("Dune")

    assert browser.visited == [SEARCH_URL, PRODUCT_URL]
    assert details.summary.startswith("Set on the desert planet")
    assert details.condition == "Pre-owned"
    assert set(REQUESTED_SPEC_KEYS) <= set(details.specifications)
    assert details.url == PRODUCT_URL

    [stored] = await all_products(session_factory)
    assert stored.id == details.product_id
    assert stored.title == "Dune"
    assert stored.price == "0.00"
    assert stored.isbn == "9780340960196"
    assert stored.publication_year == "2006"


@pytest.mark.asyncio
async def test_second_search_uses_cache(session_factory):
    browser = make_browser()
    enricher = ProductDetailEnricher(session_factory, browser)

    first = await enricher.search_and_scrape("Dune")
    visited = list(browser.visited)
    second = await enricher.search_and_scrape("Dune")

    assert browser.visited == visited
    assert second.summary == first.summary
    assert second.product_id == first.product_id


@pytest.mark.asyncio
async def test_existing_listing_product_is_enriched_in_place(session_factory):
    async with session_factory() as db:
        db.add(Product(title="Dune", author="Frank Herbert", price="£3.49", image="dune.jpg"))
        await db.commit()

    details = await ProductDetailEnricher(session_factory, make_browser()).search_and_scrape("Dune")

    [stored] = await all_products(session_factory)
    assert stored.id == details.product_id
    assert stored.price == "£3.49"
    assert stored.author == "Frank Herbert"
    assert stored.summary == details.summary


@pytest.mark.asyncio
async def test_no_matching_result(session_factory):
    browser = FakeBrowserFactory({f"{ROOT}/search?q=Ulysses": SEARCH_RESULTS})
    enricher = ProductDetailEnricher(session_factory, browser)

    assert await enricher.search_and_scrape("Ulysses") is None
    assert await all_products(session_factory) == []


@pytest.mark.asyncio
async def test_blank_query(session_factory):
    browser = make_browser()
    assert await ProductDetailEnricher(session_factory, browser).search_and_scrape("  ") is None
    assert browser.visited == []


@pytest.mark.asyncio
@pytest.mark.parametrize("query,search_url", [("D_ne", f"{ROOT}/search?q=D_ne"), ("%", f"{ROOT}/search?q=%25")])
async def test_wildcard_characters_match_literally(session_factory, query, search_url):
    async with session_factory() as db:
        db.add(Product(title="Dune", price="£3.49", summary="Arrakis"))
        await db.commit()
    browser = make_browser()

    details = await ProductDetailEnricher(session_factory, browser).search_and_scrape(query)

    assert details is None
    assert browser.visited == [search_url]


@pytest.mark.asyncio
async def test_percent_in_title_found_in_cache(session_factory):
    async with session_factory() as db:
        db.add(Product(title="100% Cotton Crafts", price="£2.00", summary="Sewing projects"))
        await db.commit()
    browser = make_browser()

    details = await ProductDetailEnricher(session_factory, browser).search_and_scrape("100% Cotton")

    assert details.summary == "Sewing projects"
    assert browser.visited == []
