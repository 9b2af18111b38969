"""
管理后台API：图纸、分类、项目、效果图维护

所有写操作记审计日志并清理目录缓存。
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_client_ip, get_request_id, require_capability
from archplans.core.database import get_db
from archplans.core.permissions import Capability
from archplans.models.enums import PlanStatus
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.catalog import (
    CategoryCreate,
    CategoryResponse,
    PlanCreate,
    PlanDetail,
    PlanSummary,
    PlanUpdate,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    VisualizationCreate,
    VisualizationResponse,
    VisualizationUpdate,
)
from archplans.schemas.common import Page
from archplans.services import cache_service
from archplans.services.audit_service import log_audit
from archplans.services.category_service import create_category
from archplans.services.plan_service import PlanService
from archplans.services.project_service import ProjectService, VisualizationService

router = APIRouter()

require_catalog = require_capability(Capability.MANAGE_CATALOG)


async def _after_write(db, request: Request, user: UserDetailResponse, action: str, resource_type: str, resource_id, detail=None):
    await log_audit(db, user.id, action, resource_type, resource_id, detail, get_client_ip(request), get_request_id(request))
    await asyncio.to_thread(cache_service.invalidate_catalog_cache)


# ---------- 图纸 ---------- #

@router.get("/plans", response_model=Page[PlanSummary])
async def admin_list_plans(
    plan_status: Optional[PlanStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    """全部状态的图纸"""
    plans, total = await PlanService(db).admin_list_plans(plan_status, search, page, page_size)
    return Page[PlanSummary].build([PlanSummary.model_validate(p) for p in plans], total, page, page_size)


@router.get("/plans/{plan_id}", response_model=PlanDetail)
async def admin_get_plan(
    plan_id: int,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    return PlanDetail.model_validate(await PlanService(db).get_plan_by_id(plan_id))


@router.post("/plans", response_model=PlanDetail, status_code=status.HTTP_201_CREATED)
async def admin_create_plan(
    body: PlanCreate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    """新建图纸（草稿），自动分配图纸编号"""
    plan = await PlanService(db).create_plan(body)
    result = PlanDetail.model_validate(plan)
    await _after_write(db, request, current_user, "create_plan", "plan", plan.id, {"plan_number": result.plan_number})
    return result


@router.patch("/plans/{plan_id}", response_model=PlanDetail)
async def admin_update_plan(
    plan_id: int,
    body: PlanUpdate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = PlanDetail.model_validate(await PlanService(db).update_plan(plan_id, body))
    await _after_write(
        db, request, current_user, "update_plan", "plan", plan_id,
        {"fields": sorted(body.model_dump(exclude_unset=True).keys())},
    )
    return result


@router.post("/plans/{plan_id}/publish", response_model=PlanDetail)
async def admin_publish_plan(
    plan_id: int,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = PlanDetail.model_validate(await PlanService(db).publish_plan(plan_id))
    await _after_write(db, request, current_user, "publish_plan", "plan", plan_id)
    return result


@router.post("/plans/{plan_id}/archive", response_model=PlanDetail)
async def admin_archive_plan(
    plan_id: int,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = PlanDetail.model_validate(await PlanService(db).archive_plan(plan_id))
    await _after_write(db, request, current_user, "archive_plan", "plan", plan_id)
    return result


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_plan(
    plan_id: int,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    """软删除，已签发授权不受影响"""
    await PlanService(db).delete_plan(plan_id)
    await _after_write(db, request, current_user, "delete_plan", "plan", plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- 分类 ---------- #

@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_category(
    body: CategoryCreate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    category = await create_category(db, body)
    result = CategoryResponse.model_validate(category)
    await _after_write(db, request, current_user, "create_category", "category", category.id, {"slug": body.slug})
    return result


# ---------- 项目 ---------- #

@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_project(
    body: ProjectCreate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = ProjectResponse.model_validate(await ProjectService(db).create_project(body))
    await _after_write(db, request, current_user, "create_project", "project", result.id, {"project_number": result.project_number})
    return result


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
async def admin_update_project(
    project_id: int,
    body: ProjectUpdate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = ProjectResponse.model_validate(await ProjectService(db).update_project(project_id, body))
    await _after_write(db, request, current_user, "update_project", "project", project_id)
    return result


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_project(
    project_id: int,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    await ProjectService(db).delete_project(project_id)
    await _after_write(db, request, current_user, "delete_project", "project", project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- 效果图 ---------- #

@router.post("/visualizations", response_model=VisualizationResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_visualization(
    body: VisualizationCreate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = VisualizationResponse.model_validate(await VisualizationService(db).create_visualization(body))
    await _after_write(
        db, request, current_user, "create_visualization", "visualization", result.id,
        {"visualization_number": result.visualization_number},
    )
    return result


@router.patch("/visualizations/{vis_id}", response_model=VisualizationResponse)
async def admin_update_visualization(
    vis_id: int,
    body: VisualizationUpdate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    result = VisualizationResponse.model_validate(await VisualizationService(db).update_visualization(vis_id, body))
    await _after_write(db, request, current_user, "update_visualization", "visualization", vis_id)
    return result


@router.delete("/visualizations/{vis_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_visualization(
    vis_id: int,
    request: Request,
    current_user: UserDetailResponse = Depends(require_catalog),
    db: AsyncSession = Depends(get_db),
):
    await VisualizationService(db).delete_visualization(vis_id)
    await _after_write(db, request, current_user, "delete_visualization", "visualization", vis_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
