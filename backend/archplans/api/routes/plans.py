"""
图纸目录API
"""
import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_current_active_user
from archplans.core.config import settings
from archplans.core.database import get_db
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.catalog import PlanDetail, PlanFilters, PlanSort, PlanSummary
from archplans.schemas.common import Page
from archplans.schemas.license import AccessResponse
from archplans.services import cache_service
from archplans.services.license_service import get_user_plan_access
from archplans.services.plan_service import PlanService

router = APIRouter()


@router.get("", response_model=Page[PlanSummary])
async def list_plans(
    category: Optional[str] = Query(None, description="分类 slug"),
    featured: Optional[bool] = None,
    style: Optional[str] = None,
    building_type: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_sqft: Optional[int] = Query(None, ge=0),
    max_sqft: Optional[int] = Query(None, ge=0),
    bedrooms: Optional[int] = Query(None, ge=0),
    bathrooms: Optional[float] = Query(None, ge=0),
    search: Optional[str] = Query(None, max_length=100),
    sort_by: PlanSort = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """已发布图纸列表：筛选、排序、分页（带 Redis 缓存）"""
    filters = PlanFilters(
        category=category, featured=featured, style=style, building_type=building_type,
        min_price=min_price, max_price=max_price, min_sqft=min_sqft, max_sqft=max_sqft,
        bedrooms=bedrooms, bathrooms=bathrooms, search=search, sort_by=sort_by,
        page=page, limit=limit,
    )
    cache_key = cache_service.key_plan_list(filters.model_dump())
    cached = await asyncio.to_thread(cache_service.get, cache_key)
    if cached is not None:
        return cached

    plans, total = await PlanService(db).list_plans(filters)
    result = Page[PlanSummary].build([PlanSummary.model_validate(p) for p in plans], total, page, limit)
    await asyncio.to_thread(cache_service.set, cache_key, result.model_dump(mode="json"), settings.CACHE_TTL_LIST)
    return result


@router.get("/featured", response_model=List[PlanSummary])
async def featured_plans(
    limit: int = Query(6, ge=1, le=24),
    db: AsyncSession = Depends(get_db),
):
    """精选图纸"""
    cache_key = cache_service.key_featured_plans(limit)
    cached = await asyncio.to_thread(cache_service.get, cache_key)
    if cached is not None:
        return cached
    plans = await PlanService(db).featured_plans(limit)
    out = [PlanSummary.model_validate(p) for p in plans]
    await asyncio.to_thread(
        cache_service.set, cache_key, [p.model_dump(mode="json") for p in out], settings.CACHE_TTL_LIST
    )
    return out


@router.get("/search", response_model=List[PlanSummary])
async def search_plans(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """按标题、描述、编号、标签搜索"""
    plans = await PlanService(db).search_plans(q, limit)
    return [PlanSummary.model_validate(p) for p in plans]


@router.get("/{plan_id}/access", response_model=AccessResponse)
async def plan_access(
    plan_id: int,
    current_user: UserDetailResponse = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """当前用户对图纸的访问权（不消耗下载次数）"""
    return await get_user_plan_access(db, current_user.id, plan_id)


@router.get("/{identifier}", response_model=PlanDetail)
async def get_plan(
    identifier: str,
    db: AsyncSession = Depends(get_db),
):
    """按 ID、slug 或图纸编号获取图纸详情"""
    plan = await PlanService(db).get_plan(identifier)
    return PlanDetail.model_validate(plan)
