"""Product search and detail enrichment API routes."""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from src.api.deps import get_product_enricher
from src.ingest.product_enricher import ProductDetailEnricher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


class RecommendationResponse(BaseModel):
    title: str
    price: str
    image: str = ""
    author: str = "Unknown"
    promo: Optional[str] = None


class ProductDetailsResponse(BaseModel):
    """Response model for deep-extracted product details."""
    product_id: Optional[int]
    title: Optional[str]
    url: Optional[str]
    summary: str
    condition: str
    specifications: Dict[str, str]
    recommendations: List[RecommendationResponse]
    reviews: List[Dict[str, str]]


@router.get("/search", response_model=Optional[ProductDetailsResponse])
async def search_product(
    q: Optional[str] = Query(None, max_length=500, description="Product title to look up"),
    enricher: ProductDetailEnricher = Depends(get_product_enricher),
):
    """
    Details for the product best matching `q`.

    Returns null when nothing on the storefront matches.
    """
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Query parameter 'q' is required")

    details = await enricher.search_and_scrape(q)
    if details is None:
        logger.info(f"No product details for '{q}'")
        return None
    return details.to_dict()
