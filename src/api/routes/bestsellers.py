"""Bestseller collection API routes."""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import get_bestseller_aggregator
from src.api.routes.products import ProductResponse
from src.ingest.bestsellers import BestsellerAggregator

router = APIRouter(tags=["bestsellers"])


class CollectionResponse(BaseModel):
    """Response model for a bestseller collection."""
    id: int
    title: str
    slug: str
    products: List[ProductResponse]

    class Config:
        from_attributes = True


@router.get("/bestsellers", response_model=List[CollectionResponse])
async def get_bestsellers(
    aggregator: BestsellerAggregator = Depends(get_bestseller_aggregator),
):
    """Homepage bestseller sections, cached after the first scrape."""
    return await aggregator.get_bestsellers()
