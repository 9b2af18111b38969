"""
下载API
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_client_ip, get_request_id, require_download_rate_limit
from archplans.core.database import get_db
from archplans.core.exceptions import AuthenticationError
from archplans.models.enums import LicenseType
from archplans.models.gallery import GalleryImage
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.license import ImageDownloadResponse, PlanDownloadResponse
from archplans.services import cache_service, notification_service
from archplans.services.audit_service import log_audit
from archplans.services.download_service import DownloadService

router = APIRouter()


@router.get("/plans/{plan_id}", response_model=PlanDownloadResponse)
async def download_plan(
    plan_id: int,
    request: Request,
    current_user: Optional[UserDetailResponse] = Depends(require_download_rate_limit),
    db: AsyncSession = Depends(get_db),
):
    """下载已购图纸全部文件，每次调用消耗一次下载额度"""
    if current_user is None:
        raise AuthenticationError("请先登录")
    ip = get_client_ip(request)
    result = await DownloadService(db).download_plan(
        current_user.id, plan_id, ip=ip, user_agent=request.headers.get("User-Agent")
    )
    await log_audit(
        db, current_user.id, "download", "plan", plan_id,
        {"license_type": result["license_type"], "remaining": result["downloads_remaining"]},
        ip, get_request_id(request),
    )
    await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    return result


@router.get("/{image_id}", response_model=ImageDownloadResponse)
async def download_image(
    image_id: int,
    request: Request,
    license: LicenseType = Query(LicenseType.STANDARD, description="授权等级"),
    current_user: Optional[UserDetailResponse] = Depends(require_download_rate_limit),
    db: AsyncSession = Depends(get_db),
):
    """下载图库图片：PREVIEW 可匿名；其他等级需登录并持有有效授权"""
    ip = get_client_ip(request)
    result = await DownloadService(db).download_image(
        current_user.id if current_user else None,
        image_id,
        license_type=license,
        ip=ip,
        user_agent=request.headers.get("User-Agent"),
    )
    if license != LicenseType.PREVIEW and current_user is not None:
        await log_audit(
            db, current_user.id, "download", "image", image_id,
            {"license_type": result["license_type"], "remaining": result["downloads_remaining"]},
            ip, get_request_id(request),
        )
        image = await db.get(GalleryImage, image_id)
        await notification_service.notify_download(
            current_user.email,
            current_user.name or current_user.email,
            image.title if image else result["filename"],
            LicenseType(result["license_type"]).value,
            result["downloads_remaining"],
        )
    await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    return result
