"""
图库API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.database import get_db
from archplans.models.enums import ImageCategory
from archplans.schemas.gallery import GalleryImageList, GalleryImageResponse
from archplans.schemas.license import LicenseTierResponse
from archplans.services.gallery_service import GalleryService
from archplans.services.license_service import LICENSE_TIERS

router = APIRouter()


@router.get("/images", response_model=GalleryImageList)
async def list_gallery_images(
    category: Optional[ImageCategory] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """已审核通过的图库图片"""
    data = await GalleryService(db).list_public_images(category, limit, offset)
    return GalleryImageList(
        images=[GalleryImageResponse.model_validate(i) for i in data["images"]],
        total_count=data["total_count"],
        has_more=data["has_more"],
    )


@router.get("/licenses", response_model=List[LicenseTierResponse])
async def license_tiers():
    """授权等级、价格与权益说明"""
    return [
        LicenseTierResponse(
            license_type=t.license_type,
            name=t.name,
            description=t.description,
            price=float(t.price),
            max_downloads=t.max_downloads,
            expires_days=t.expires_days,
            commercial_use=t.commercial_use,
            resale_allowed=t.resale_allowed,
            features=t.features,
        )
        for t in LICENSE_TIERS.values()
    ]
