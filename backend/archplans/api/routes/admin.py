"""
管理后台API：订单、图库审核、统计、数据完整性、编号状态、审计日志
"""
import asyncio
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_client_ip, get_request_id, require_capability
from archplans.api.routes.orders import order_detail
from archplans.core.config import settings
from archplans.core.database import get_db
from archplans.core.permissions import Capability
from archplans.models.enums import ImageCategory, ImageStatus, OrderStatus
from archplans.schemas.admin import AnalyticsResponse, IntegrityReport, SequenceStatus
from archplans.schemas.audit import AuditLogResponse
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.common import Page
from archplans.schemas.gallery import GalleryImageCreate, GalleryImageResponse, GalleryImageUpdate
from archplans.schemas.order import AdminOrderDetail, OrderResponse, OrderStatusUpdate
from archplans.services import cache_service, notification_service
from archplans.services.analytics_service import get_analytics
from archplans.services.audit_service import list_audit_logs, log_audit
from archplans.services.gallery_service import GalleryService
from archplans.services.integrity_service import check_data_integrity
from archplans.services.order_service import OrderService
from archplans.services.sequence_service import get_current_sequences

router = APIRouter()


# ---------- 订单 ---------- #

@router.get("/orders", response_model=Page[OrderResponse])
async def admin_list_orders(
    status_filter: str = Query("ALL", alias="status", description="ALL 或订单状态"),
    search: Optional[str] = Query(None, max_length=100, description="订单号、账单邮箱或姓名"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: UserDetailResponse = Depends(require_capability(Capability.MANAGE_ORDERS)),
    db: AsyncSession = Depends(get_db),
):
    """全部订单：按状态、关键字、日期范围筛选"""
    order_status = None
    if status_filter.upper() != "ALL":
        try:
            order_status = OrderStatus(status_filter.upper())
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"未知的订单状态: {status_filter}")
    orders, total = await OrderService(db).admin_list_orders(
        status=order_status,
        search=search,
        date_from=datetime.combine(date_from, time.min) if date_from else None,
        date_to=datetime.combine(date_to, time.max) if date_to else None,
        page=page,
        page_size=page_size,
    )
    return Page[OrderResponse].build([OrderResponse.model_validate(o) for o in orders], total, page, page_size)


@router.get("/orders/{order_id}", response_model=AdminOrderDetail)
async def admin_get_order(
    order_id: int,
    current_user: UserDetailResponse = Depends(require_capability(Capability.MANAGE_ORDERS)),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).get_order(order_id)
    return order_detail(order, AdminOrderDetail)


@router.patch("/orders/{order_id}/status", response_model=AdminOrderDetail)
async def admin_update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_capability(Capability.MANAGE_ORDERS)),
    db: AsyncSession = Depends(get_db),
):
    """修改订单状态；不允许的流转返回 409"""
    order = await OrderService(db).admin_update_status(order_id, body.status, body.internal_notes)
    await log_audit(
        db, current_user.id, "update_order_status", "order", order_id,
        {"status": body.status.value}, get_client_ip(request), get_request_id(request),
    )
    await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    return order_detail(order, AdminOrderDetail)


# ---------- 图库审核 ---------- #

@router.get("/images", response_model=Page[GalleryImageResponse])
async def admin_list_images(
    image_status: Optional[ImageStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: UserDetailResponse = Depends(require_capability(Capability.MODERATE_IMAGES)),
    db: AsyncSession = Depends(get_db),
):
    images, total = await GalleryService(db).admin_list_images(image_status, page, page_size)
    return Page[GalleryImageResponse].build(
        [GalleryImageResponse.model_validate(i) for i in images], total, page, page_size
    )


@router.post("/images", response_model=GalleryImageResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_image(
    body: GalleryImageCreate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_capability(Capability.MODERATE_IMAGES)),
    db: AsyncSession = Depends(get_db),
):
    """按外部 URL 登记图片，状态为待审核"""
    image = await GalleryService(db).create_from_url(body, current_user.id)
    await log_audit(
        db, current_user.id, "create_image", "image", image.id,
        {"gallery_number": image.gallery_number}, get_client_ip(request), get_request_id(request),
    )
    return image


@router.post("/upload", response_model=GalleryImageResponse, status_code=status.HTTP_201_CREATED)
async def admin_upload_image(
    request: Request,
    file: UploadFile = File(...),
    title: str = Form(..., min_length=1, max_length=100),
    category: ImageCategory = Form(...),
    description: Optional[str] = Form(None, max_length=500),
    current_user: UserDetailResponse = Depends(require_capability(Capability.MODERATE_IMAGES)),
    db: AsyncSession = Depends(get_db),
):
    """上传图片到对象存储并登记，状态为待审核"""
    content = await file.read()
    image = await GalleryService(db).upload_image(
        content=content,
        filename=file.filename or "upload",
        content_type=file.content_type,
        title=title,
        category=category,
        description=description,
        uploaded_by_id=current_user.id,
    )
    await log_audit(
        db, current_user.id, "upload_image", "image", image.id,
        {"gallery_number": image.gallery_number, "size": len(content)},
        get_client_ip(request), get_request_id(request),
    )
    await notification_service.notify_upload(image.gallery_number, image.title, current_user.email)
    return image


@router.patch("/images/{image_id}", response_model=GalleryImageResponse)
async def admin_update_image(
    image_id: int,
    body: GalleryImageUpdate,
    request: Request,
    current_user: UserDetailResponse = Depends(require_capability(Capability.MODERATE_IMAGES)),
    db: AsyncSession = Depends(get_db),
):
    """修改标题、分类、描述，或审核通过/拒绝"""
    image = await GalleryService(db).update_image(image_id, body)
    await log_audit(
        db, current_user.id, "update_image", "image", image_id,
        body.model_dump(exclude_unset=True, mode="json"), get_client_ip(request), get_request_id(request),
    )
    await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    return image


@router.delete("/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_image(
    image_id: int,
    request: Request,
    current_user: UserDetailResponse = Depends(require_capability(Capability.MODERATE_IMAGES)),
    db: AsyncSession = Depends(get_db),
):
    """软删除图片"""
    await GalleryService(db).delete_image(image_id)
    await log_audit(db, current_user.id, "delete_image", "image", image_id, None, get_client_ip(request), get_request_id(request))
    await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- 统计与运维 ---------- #

@router.get("/analytics", response_model=AnalyticsResponse)
async def admin_analytics(
    current_user: UserDetailResponse = Depends(require_capability(Capability.VIEW_ANALYTICS)),
    db: AsyncSession = Depends(get_db),
):
    """后台统计（带 Redis 缓存）"""
    cache_key = cache_service.key_admin_analytics()
    cached = await asyncio.to_thread(cache_service.get, cache_key)
    if cached is not None:
        return cached
    data = AnalyticsResponse(**await get_analytics(db))
    await asyncio.to_thread(cache_service.set, cache_key, data.model_dump(mode="json"), settings.CACHE_TTL_STATS)
    return data


@router.get("/integrity", response_model=IntegrityReport)
async def admin_integrity(
    current_user: UserDetailResponse = Depends(require_capability(Capability.VIEW_ADMIN_DASHBOARD)),
    db: AsyncSession = Depends(get_db),
):
    """数据完整性检查报告"""
    return await check_data_integrity(db)


@router.get("/sequences", response_model=SequenceStatus)
async def admin_sequences(
    year: Optional[int] = Query(None, ge=2000, le=9999),
    current_user: UserDetailResponse = Depends(require_capability(Capability.VIEW_ADMIN_DASHBOARD)),
    db: AsyncSession = Depends(get_db),
):
    """各类编号当年的下一个序号"""
    return await get_current_sequences(db, year)


@router.get("/audit-logs", response_model=Page[AuditLogResponse])
async def admin_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="按操作类型筛选"),
    resource_type: Optional[str] = Query(None, description="按资源类型筛选"),
    user_id: Optional[int] = None,
    current_user: UserDetailResponse = Depends(require_capability(Capability.VIEW_ADMIN_DASHBOARD)),
    db: AsyncSession = Depends(get_db),
):
    """查询审计日志"""
    items, total = await list_audit_logs(db, page, page_size, action, resource_type, user_id)
    return Page[AuditLogResponse].build([AuditLogResponse.model_validate(x) for x in items], total, page, page_size)
