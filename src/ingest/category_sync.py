"""Category tree synchronization from the storefront navigation menu."""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from urllib.parse import urljoin

from src import metrics
from src.config import settings
from src.db.models import Category
from src.db.session import AsyncSessionLocal
from src.db.store import CatalogStore
from src.ingest.browser import new_browser_session
from src.ingest.extraction import ExtractionEngine, extraction_engine
from src.ingest.records import NavLink, RawNavLink
from src.ingest.results import ScrapeResult

logger = logging.getLogger(__name__)

# Top-level menu entries whose live anchors are unreliable
PARENT_URL_OVERRIDES = {
    "Fiction Books": "/collections/fiction-books",
    "Non-Fiction Books": "/collections/non-fiction-books",
    "Children's Books": "/collections/childrens-books",
    "Rare Books": "/collections/rare-books",
}

# Seeded when missing from the live menu so the tree stays usable
CORE_CATEGORIES = (
    ("Fantasy", "/collections/fantasy-fiction-books"),
    ("Crime & Mystery", "/collections/crime-and-mystery-books"),
    ("Modern Fiction", "/collections/modern-fiction-books"),
    ("Romance", "/collections/romance-books"),
    ("Thriller & Suspense", "/collections/thriller-and-suspense-books"),
    ("Biography & True Stories", "/collections/biography-and-true-story-books"),
    ("Health & Personal Development", "/collections/health-and-personal-development-books"),
    ("Children's Fiction", "/collections/childrens-fiction-books"),
    ("Rare Fiction", "/collections/rare-fiction-books"),
)


@dataclass
class ChildEntry:
    title: str
    url: str


@dataclass
class ParentEntry:
    url: str
    children: List[ChildEntry] = field(default_factory=list)


def resolve_nav_url(href: str, base_url: str) -> Optional[str]:
    """Absolute URL for a menu href, or None for root and placeholder links."""
    href = (href or "").strip()
    if not href or href.startswith("#") or "javascript:" in href.lower():
        return None

    url = href if href.startswith("http") else urljoin(base_url.rstrip("/") + "/", href.lstrip("/"))
    if url.rstrip("/") == base_url.rstrip("/"):
        return None
    return url


def normalize_nav_links(raw_links: Sequence[RawNavLink], base_url: str) -> List[NavLink]:
    links = []
    for raw in raw_links:
        link = raw.normalize()
        if link is None:
            continue
        url = resolve_nav_url(link.url, base_url)
        if url is None:
            continue
        link.url = url
        links.append(link)
    return links


def build_category_map(
    links: Sequence[NavLink],
    root_url: str,
    overrides: Optional[Dict[str, str]] = None,
) -> Dict[str, ParentEntry]:
    """
    Two-phase build of parent -> children.

    Phase 1 registers parents; a parent-level anchor (no child name) is
    authoritative for the root URL, and overridden parents always point at
    their canonical collection. Phase 2 attaches children, deduped by URL.
    """
    overrides = PARENT_URL_OVERRIDES if overrides is None else overrides
    tree: Dict[str, ParentEntry] = {}

    for link in links:
        entry = tree.setdefault(link.parent_name, ParentEntry(url=link.url))
        if link.child_name is None:
            entry.url = link.url

    for name, path in overrides.items():
        if name in tree:
            tree[name].url = f"{root_url}{path}"

    root_urls = {entry.url for entry in tree.values()}
    for link in links:
        if link.child_name is None:
            continue
        parent = tree[link.parent_name]
        if link.url in root_urls:
            continue
        if any(child.url == link.url for child in parent.children):
            continue
        parent.children.append(ChildEntry(title=link.child_name, url=link.url))

    return tree


def seed_core_categories(tree: Dict[str, ParentEntry], root_url: str) -> int:
    """Add preset core categories missing from the tree. Returns how many were added."""
    added = 0
    for title, path in CORE_CATEGORIES:
        if title not in tree:
            tree[title] = ParentEntry(url=f"{root_url}{path}")
            added += 1
    return added


class CategoryTreeSynchronizer:
    """Crawls the navigation menu and merges it into the stored category tree."""

    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        browser_factory=new_browser_session,
        engine: ExtractionEngine = extraction_engine,
    ):
        self.session_factory = session_factory
        self.browser_factory = browser_factory
        self.engine = engine

    async def scrape_menu(self) -> ScrapeResult[List[NavLink]]:
        """Visit the storefront root and read every categorized menu anchor."""
        url = settings.site_root_url
        start = time.monotonic()
        try:
            async with self.browser_factory(max_requests=3) as browser:
                logger.info("Visiting homepage for menu sync")
                loaded = await browser.goto(url, wait_until="networkidle")
                await browser.dismiss_cookie_consent()
                html = await browser.content()
        except Exception as e:
            logger.error(f"Menu scrape failed: {e}", exc_info=True)
            metrics.record_failure("navigation", type(e).__name__)
            return ScrapeResult.failure(str(e), url=url)

        links = normalize_nav_links(self.engine.extract_nav_links(html), settings.site_base_url)
        if loaded and links:
            result = ScrapeResult.success(links, url=url)
        else:
            result = ScrapeResult.partial(links, url=url, error="menu not loaded")
        metrics.record_page("navigation", result.outcome.value, time.monotonic() - start)
        return result

    async def persist(self, store: CatalogStore, tree: Dict[str, ParentEntry]):
        for parent_title, entry in tree.items():
            parent = await store.upsert_category_by_url(entry.url, parent_title)
            for child in entry.children:
                await store.upsert_category_by_url(
                    child.url, child.title, parent_id=parent.id, set_parent=True
                )
        await store.commit()

    async def sync(self) -> List[Category]:
        """Refresh the category tree from the live menu and return the root categories."""
        result = await self.scrape_menu()
        if not result.ok:
            logger.warning(f"Menu scrape yielded no data: {result.error}")
        links = result.data or []

        tree = build_category_map(links, settings.site_root_url)
        seeded = seed_core_categories(tree, settings.site_root_url)
        logger.info(
            f"Extracted {len(tree)} parent categories "
            f"({len(links)} anchors, {seeded} seeded)"
        )

        async with self.session_factory() as db:
            store = CatalogStore(db)
            try:
                await self.persist(store, tree)
            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to persist category tree: {e}", exc_info=True)
                metrics.record_failure("navigation", "persist")
            return await store.root_categories()

    async def get_navigation(self) -> List[Category]:
        """Stored root categories with children; syncs when the store is empty."""
        async with self.session_factory() as db:
            cached = await CatalogStore(db).root_categories()
        if cached:
            logger.info("Serving navigation tree from database")
            metrics.record_cache_hit("navigation")
            return cached

        logger.info("Database empty; syncing menu")
        return await self.sync()


# Global synchronizer instance
category_synchronizer = CategoryTreeSynchronizer()
