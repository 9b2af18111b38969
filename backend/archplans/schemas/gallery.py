"""
图库图片Schema
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from archplans.models.enums import ImageCategory, ImageStatus


class GalleryImageResponse(BaseModel):
    id: int
    gallery_number: str
    title: str
    description: Optional[str] = None
    category: ImageCategory
    url: str
    mime_type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    status: ImageStatus
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GalleryImageList(BaseModel):
    """前台图库列表"""
    images: List[GalleryImageResponse]
    total_count: int
    has_more: bool


class GalleryImageCreate(BaseModel):
    """通过外部 URL 登记图片"""
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: ImageCategory
    url: str = Field(..., min_length=1, max_length=500)
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)


class GalleryImageUpdate(BaseModel):
    """后台修改：标题、分类、描述、审核状态"""
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[ImageCategory] = None
    status: Optional[ImageStatus] = None
