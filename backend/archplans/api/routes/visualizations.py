"""
效果图API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.database import get_db
from archplans.schemas.catalog import VisualizationResponse
from archplans.schemas.common import Page
from archplans.services.project_service import VisualizationService

router = APIRouter()


@router.get("", response_model=Page[VisualizationResponse])
async def list_visualizations(
    category: Optional[str] = None,
    project_id: Optional[int] = None,
    featured: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    items, total = await VisualizationService(db).list_visualizations(category, project_id, featured, page, page_size)
    return Page[VisualizationResponse].build(
        [VisualizationResponse.model_validate(v) for v in items], total, page, page_size
    )


@router.get("/search", response_model=List[VisualizationResponse])
async def search_visualizations(
    q: str = Query(..., min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    return [VisualizationResponse.model_validate(v) for v in await VisualizationService(db).search_visualizations(q)]


@router.get("/{identifier}", response_model=VisualizationResponse)
async def get_visualization(identifier: str, db: AsyncSession = Depends(get_db)):
    return VisualizationResponse.model_validate(await VisualizationService(db).get_visualization(identifier))
