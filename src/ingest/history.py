"""Recently viewed products by id."""

import logging
from typing import Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Product
from src.db.store import CatalogStore

logger = logging.getLogger(__name__)


def parse_ids(ids: Iterable) -> List[int]:
    """Numeric ids in request order; anything non-numeric is dropped."""
    parsed = []
    for raw in ids or []:
        try:
            parsed.append(int(str(raw).strip()))
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric product id: {raw!r}")
    return parsed


async def get_products_by_ids(db: AsyncSession, ids: Iterable) -> List[Product]:
    """Products for `ids` in the requested order; unknown ids are omitted."""
    wanted = parse_ids(ids)
    if not wanted:
        return []

    try:
        found = {p.id: p for p in await CatalogStore(db).products_by_ids(wanted)}
    except Exception as e:
        logger.error(f"History lookup failed: {e}", exc_info=True)
        return []

    return [found[i] for i in wanted if i in found]
