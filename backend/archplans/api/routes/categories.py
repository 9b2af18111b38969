"""
分类API
"""
import asyncio
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.config import settings
from archplans.core.database import get_db
from archplans.schemas.catalog import CategoryResponse
from archplans.services import cache_service
from archplans.services.category_service import list_categories

router = APIRouter()


@router.get("", response_model=List[CategoryResponse])
async def get_categories(db: AsyncSession = Depends(get_db)):
    """启用的分类及在售图纸数"""
    cache_key = cache_service.key_categories()
    cached = await asyncio.to_thread(cache_service.get, cache_key)
    if cached is not None:
        return cached
    data = await list_categories(db)
    await asyncio.to_thread(cache_service.set, cache_key, data, settings.CACHE_TTL_LIST)
    return data
