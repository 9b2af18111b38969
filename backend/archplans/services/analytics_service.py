"""
后台统计：总量、下载环比、图片状态分布、授权分布、最近下载、近 7 日下载曲线
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.models.download_log import DownloadLog
from archplans.models.enums import ImageStatus, LicenseType, OrderStatus, PlanStatus
from archplans.models.gallery import GalleryImage
from archplans.models.order import Order
from archplans.models.plan import Plan
from archplans.models.user import User


def percentage_change(current: int, previous: int) -> int:
    """环比百分比；上期为 0 时，本期有量记 100，否则 0"""
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)


def change_type(change: int) -> str:
    if change > 0:
        return "positive"
    if change < 0:
        return "negative"
    return "neutral"


def compare(current: int, previous: int) -> dict:
    change = percentage_change(current, previous)
    return {"current": current, "previous": previous, "change": change, "change_type": change_type(change)}


def _month_start(d: datetime) -> datetime:
    return d.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(d: datetime) -> datetime:
    first = _month_start(d)
    return _month_start(first - timedelta(days=1))


async def _count(db: AsyncSession, model, *conds) -> int:
    return await db.scalar(select(func.count()).select_from(model).where(*conds)) or 0


async def _downloads_between(db: AsyncSession, start: datetime, end: datetime) -> int:
    return await _count(db, DownloadLog, DownloadLog.downloaded_at >= start, DownloadLog.downloaded_at < end)


async def get_analytics(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)
    yesterday = today - timedelta(days=1)
    month_start = _month_start(now)
    prev_month_start = _previous_month_start(now)

    revenue = await db.scalar(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status == OrderStatus.COMPLETED)
    )

    status_rows = await db.execute(
        select(GalleryImage.status, func.count())
        .where(GalleryImage.is_active.is_(True))
        .group_by(GalleryImage.status)
    )
    images_by_status = {s.value: 0 for s in ImageStatus}
    for status, count in status_rows.all():
        images_by_status[ImageStatus(status).value] = count

    license_rows = await db.execute(
        select(DownloadLog.license_type, func.count()).group_by(DownloadLog.license_type)
    )
    downloads_by_license = {t.value: 0 for t in LicenseType}
    for license_type, count in license_rows.all():
        downloads_by_license[LicenseType(license_type).value] = count

    recent = await db.execute(
        select(DownloadLog)
        .options(selectinload(DownloadLog.user), selectinload(DownloadLog.plan), selectinload(DownloadLog.image))
        .order_by(DownloadLog.downloaded_at.desc(), DownloadLog.id.desc())
        .limit(10)
    )
    recent_downloads = []
    for log in recent.scalars().all():
        target = log.plan or log.image
        recent_downloads.append({
            "id": log.id,
            "user_email": log.user.email if log.user else None,
            "item_title": target.title if target else None,
            "license_type": LicenseType(log.license_type).value,
            "downloaded_at": log.downloaded_at,
        })

    last_7_days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        last_7_days.append({
            "date": day.strftime("%Y-%m-%d"),
            "count": await _downloads_between(db, day, day + timedelta(days=1)),
        })

    return {
        "total_users": await _count(db, User, User.is_active.is_(True)),
        "total_images": await _count(db, GalleryImage, GalleryImage.is_active.is_(True)),
        "total_plans": await _count(db, Plan, Plan.is_active.is_(True), Plan.status == PlanStatus.PUBLISHED),
        "total_orders": await _count(db, Order),
        "total_revenue": float(revenue or 0),
        "total_downloads": await _count(db, DownloadLog),
        "downloads_today": compare(
            await _downloads_between(db, today, tomorrow),
            await _downloads_between(db, yesterday, today),
        ),
        "downloads_this_month": compare(
            await _downloads_between(db, month_start, tomorrow),
            await _downloads_between(db, prev_month_start, month_start),
        ),
        "images_by_status": images_by_status,
        "downloads_by_license": downloads_by_license,
        "recent_downloads": recent_downloads,
        "downloads_last_7_days": last_7_days,
    }
