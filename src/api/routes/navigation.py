"""Category tree API routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import get_category_synchronizer
from src.ingest.category_sync import CategoryTreeSynchronizer

router = APIRouter(tags=["navigation"])


class SubcategoryResponse(BaseModel):
    """Response model for a child category."""
    id: int
    title: str
    url: str
    parent_id: Optional[int]
    last_page: int

    class Config:
        from_attributes = True


class CategoryResponse(SubcategoryResponse):
    """Response model for a root category with its children."""
    children: List[SubcategoryResponse] = []


@router.get("/navigation", response_model=List[CategoryResponse])
async def get_navigation(
    synchronizer: CategoryTreeSynchronizer = Depends(get_category_synchronizer),
):
    """Root categories with children, syncing from the live menu when empty."""
    return await synchronizer.get_navigation()
