"""
项目API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.database import get_db
from archplans.models.enums import ProjectStatus
from archplans.schemas.catalog import PlanSummary, ProjectDetail, ProjectResponse, VisualizationResponse
from archplans.schemas.common import Page
from archplans.services.project_service import ProjectService

router = APIRouter()


@router.get("", response_model=Page[ProjectResponse])
async def list_projects(
    status: Optional[ProjectStatus] = None,
    featured: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    projects, total = await ProjectService(db).list_projects(status, featured, page, page_size)
    return Page[ProjectResponse].build([ProjectResponse.model_validate(p) for p in projects], total, page, page_size)


@router.get("/search", response_model=List[ProjectResponse])
async def search_projects(
    q: str = Query(..., min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    return [ProjectResponse.model_validate(p) for p in await ProjectService(db).search_projects(q)]


@router.get("/{identifier}", response_model=ProjectDetail)
async def get_project(identifier: str, db: AsyncSession = Depends(get_db)):
    """项目详情，附带在售图纸与效果图"""
    data = await ProjectService(db).get_project(identifier)
    base = ProjectResponse.model_validate(data["project"]).model_dump()
    return ProjectDetail(
        **base,
        plans=[PlanSummary.model_validate(p) for p in data["plans"]],
        visualizations=[VisualizationResponse.model_validate(v) for v in data["visualizations"]],
    )
