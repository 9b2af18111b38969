"""
授权与下载Schema
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from archplans.models.enums import LicenseType


class AccessResponse(BaseModel):
    """用户对某图纸/图片的访问权"""
    has_access: bool
    license_type: Optional[LicenseType] = None
    downloads_remaining: Optional[int] = None  # 不限次数时为空


class LicenseTierResponse(BaseModel):
    license_type: LicenseType
    name: str
    description: str
    price: float
    max_downloads: Optional[int] = None
    expires_days: Optional[int] = None
    commercial_use: bool
    resale_allowed: bool
    features: List[str] = []


class LicenseResponse(BaseModel):
    id: int
    license_key: str
    license_type: LicenseType
    plan_id: Optional[int] = None
    image_id: Optional[int] = None
    order_id: Optional[int] = None
    item_title: Optional[str] = None
    download_count: int
    max_downloads: Optional[int] = None
    downloads_remaining: Optional[int] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    commercial_use: bool
    resale_allowed: bool
    purchase_price: float
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DownloadFile(BaseModel):
    filename: str
    file_type: Optional[str] = None
    file_format: Optional[str] = None
    url: str


class PlanDownloadResponse(BaseModel):
    plan_id: int
    plan_number: str
    license_type: LicenseType
    downloads_remaining: Optional[int] = None
    files: List[DownloadFile]
    expires_in: int


class ImageDownloadResponse(BaseModel):
    image_id: int
    url: str
    filename: str
    license_type: LicenseType
    downloads_remaining: Optional[int] = None
    expires_in: int
