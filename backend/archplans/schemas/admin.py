"""
管理后台Schema：统计与数据完整性
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel

ChangeType = Literal["positive", "negative", "neutral"]


class PeriodComparison(BaseModel):
    current: int
    previous: int
    change: int  # 百分比
    change_type: ChangeType


class RecentDownload(BaseModel):
    id: int
    user_email: Optional[str] = None
    item_title: Optional[str] = None
    license_type: str
    downloaded_at: Optional[datetime] = None


class DailyCount(BaseModel):
    date: str
    count: int


class AnalyticsResponse(BaseModel):
    total_users: int
    total_images: int
    total_plans: int
    total_orders: int
    total_revenue: float
    total_downloads: int
    downloads_today: PeriodComparison
    downloads_this_month: PeriodComparison
    images_by_status: Dict[str, int]
    downloads_by_license: Dict[str, int]
    recent_downloads: List[RecentDownload]
    downloads_last_7_days: List[DailyCount]


class SequenceStatus(BaseModel):
    year: int
    plan_sequence: int
    visualization_sequence: int
    project_sequence: int
    gallery_sequence: int


class IntegrityReport(BaseModel):
    orphaned_order_items: List[int]
    orphaned_licenses: List[int]
    invalid_plan_pricing: List[int]
    over_consumed_licenses: List[int]
    completed_orders_without_licenses: List[int]
    is_healthy: bool
    checked_at: datetime
