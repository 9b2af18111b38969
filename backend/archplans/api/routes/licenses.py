"""
我的授权API
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_current_active_user
from archplans.core.database import get_db
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.license import LicenseResponse
from archplans.services.license_service import list_user_licenses

router = APIRouter()


@router.get("", response_model=List[LicenseResponse])
async def my_licenses(
    current_user: UserDetailResponse = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """当前用户全部授权及剩余下载次数"""
    return await list_user_licenses(db, current_user.id)
