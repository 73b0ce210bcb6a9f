"""Category listing and browsing-history API routes."""

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_catalog_crawler, get_database
from src.ingest.catalog_crawler import IncrementalCatalogCrawler
from src.ingest.history import get_products_by_ids

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])


class ProductResponse(BaseModel):
    """Response model for a listed product."""
    id: int
    title: str
    author: Optional[str]
    price: str
    image: Optional[str]
    promo: Optional[str] = None
    category_id: Optional[int] = None
    collection_id: Optional[int] = None

    class Config:
        from_attributes = True


class HistoryRequest(BaseModel):
    """Request model for browsing-history lookup."""
    ids: List[Union[int, str]]


@router.get("/category/{slug}", response_model=List[ProductResponse])
async def get_category(
    slug: str,
    load_more: Optional[str] = Query(None, alias="loadMore"),
    crawler: IncrementalCatalogCrawler = Depends(get_catalog_crawler),
):
    """Stored products for a category; `loadMore=true` crawls the next page."""
    return await crawler.fetch_category(slug, load_more=load_more == "true")


@router.post("/history", response_model=List[ProductResponse])
async def get_history(request: Request, db: AsyncSession = Depends(get_database)):
    """Products for previously viewed ids, in request order."""
    try:
        payload = HistoryRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Body must be {\"ids\": [...]}")

    return await get_products_by_ids(db, payload.ids)
