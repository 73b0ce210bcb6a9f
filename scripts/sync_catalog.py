#!/usr/bin/env python3
"""
Catalog maintenance script.

Refreshes the stored category tree from the live storefront menu, lists what
is stored, crawls single category pages and clears stuck crawl locks.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.db.models import Base
from src.db.session import AsyncSessionLocal, engine
from src.db.store import CatalogStore
from src.ingest.bestsellers import bestseller_aggregator
from src.ingest.catalog_crawler import catalog_crawler
from src.ingest.category_sync import category_synchronizer
from src.worker.crawl_lock import crawl_lock_manager


async def ensure_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def sync_tree():
    """Refresh the category tree from the live menu."""
    await ensure_schema()
    roots = await category_synchronizer.sync()
    children = sum(len(root.children) for root in roots)
    print(f"\nSync complete: {len(roots)} root categories, {children} subcategories")


async def list_tree():
    """Print stored categories with their product counts."""
    try:
        async with AsyncSessionLocal() as db:
            store = CatalogStore(db)
            roots = await store.root_categories()
            if not roots:
                print("No categories stored. Run with --sync first.")
                return

            print(f"\nStored Categories ({len(roots)} roots):\n")
            for root in roots:
                count = await store.count_products(root.id)
                print(f"{root.title} [{count} products, offset {root.last_page}]")
                print(f"  {root.url}")
                for child in root.children:
                    count = await store.count_products(child.id)
                    print(f"  - {child.title} [{count} products, offset {child.last_page}]")
    except Exception as e:
        print(f"Error: Failed to list categories: {e}")
        print("Make sure the database is running and accessible.")
        sys.exit(1)


async def show_bestsellers():
    """Print bestseller collections, scraping the homepage if none are stored."""
    await ensure_schema()
    collections = await bestseller_aggregator.get_bestsellers()
    if not collections:
        print("No bestseller sections found.")
        return
    for collection in collections:
        print(f"\n{collection.title} ({collection.slug})")
        print("-" * 40)
        for product in collection.products:
            print(f"  {product.title} - {product.author} - {product.price}")


async def crawl_category(slug: str):
    """Crawl the next unfetched page of a category."""
    await ensure_schema()
    products = await catalog_crawler.fetch_category(slug, load_more=True)
    print(f"'{slug}' now holds {len(products)} stored products")


async def unlock_category(category_id: int):
    """Clear a stuck crawl lock."""
    try:
        if await crawl_lock_manager.force_unlock(category_id):
            print(f"Cleared crawl lock for category {category_id}")
        else:
            print(f"Could not clear crawl lock for category {category_id}")
    finally:
        await crawl_lock_manager.close()


def print_help():
    print("Usage: python sync_catalog.py [OPTIONS]")
    print("")
    print("Options:")
    print("  --sync          Refresh the category tree from the live menu")
    print("  --list          List stored categories with product counts")
    print("  --bestsellers   Show bestseller collections (scrapes if none stored)")
    print("  --crawl SLUG    Crawl the next page of a category")
    print("  --unlock ID     Clear the crawl lock of a category id")
    print("  --help          Show this help message")
    print("")
    print("With no options, runs --sync")


if __name__ == "__main__":
    if len(sys.argv) > 1:
        option = sys.argv[1]
        if option == "--sync":
            asyncio.run(sync_tree())
        elif option == "--list":
            asyncio.run(list_tree())
        elif option == "--bestsellers":
            asyncio.run(show_bestsellers())
        elif option == "--crawl" and len(sys.argv) > 2:
            asyncio.run(crawl_category(sys.argv[2]))
        elif option == "--unlock" and len(sys.argv) > 2 and sys.argv[2].isdigit():
            asyncio.run(unlock_category(int(sys.argv[2])))
        elif option == "--help":
            print_help()
        else:
            print(f"Unknown option: {' '.join(sys.argv[1:])}")
            print_help()
            sys.exit(2)
    else:
        asyncio.run(sync_tree())
