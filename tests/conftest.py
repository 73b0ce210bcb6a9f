"""Shared fixtures: SQLite-backed sessions and a canned-markup browser."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.db.models import Base
from src.worker.crawl_lock import CrawlLockManager
from tests.fakes import HOMEPAGE_MENU, ROOT, FakeBrowserFactory


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a throwaway SQLite database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def browser_factory():
    return FakeBrowserFactory({ROOT: HOMEPAGE_MENU})


@pytest.fixture
def unlocked():
    """Lock manager with locking disabled; crawls proceed unlocked."""
    return CrawlLockManager(enabled=False)
