"""
数据完整性检查：孤立记录、无效定价、超额下载、已完成却无授权的订单

只报告，不修复；供离线脚本与后台接口调用。
"""
import logging
from datetime import datetime

from sqlalchemy import select, and_, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.models.enums import OrderStatus
from archplans.models.gallery import GalleryImage
from archplans.models.license import License
from archplans.models.order import Order, OrderItem
from archplans.models.plan import Plan

logger = logging.getLogger(__name__)


def _missing(fk_column, model):
    """外键有值但目标行不存在"""
    return and_(fk_column.is_not(None), ~exists().where(model.id == fk_column))


async def _ids(db: AsyncSession, stmt) -> list[int]:
    result = await db.execute(stmt)
    return sorted(result.scalars().all())


async def check_data_integrity(db: AsyncSession) -> dict:
    orphaned_items = await _ids(
        db,
        select(OrderItem.id).where(
            or_(
                _missing(OrderItem.plan_id, Plan),
                _missing(OrderItem.image_id, GalleryImage),
                and_(OrderItem.plan_id.is_(None), OrderItem.image_id.is_(None)),
            )
        ),
    )
    orphaned_licenses = await _ids(
        db,
        select(License.id).where(
            or_(
                _missing(License.plan_id, Plan),
                _missing(License.image_id, GalleryImage),
                and_(License.plan_id.is_(None), License.image_id.is_(None)),
            )
        ),
    )
    invalid_pricing = await _ids(
        db,
        select(Plan.id).where(
            or_(
                Plan.base_price <= 0,
                Plan.single_license_price < 0,
                Plan.commercial_license_price < 0,
                Plan.unlimited_license_price < 0,
            )
        ),
    )
    over_consumed = await _ids(
        db,
        select(License.id).where(
            License.max_downloads.is_not(None),
            License.download_count > License.max_downloads,
        ),
    )
    completed_without_licenses = await _ids(
        db,
        select(Order.id).where(
            Order.status == OrderStatus.COMPLETED,
            ~exists().where(License.order_id == Order.id),
        ),
    )
    report = {
        "orphaned_order_items": orphaned_items,
        "orphaned_licenses": orphaned_licenses,
        "invalid_plan_pricing": invalid_pricing,
        "over_consumed_licenses": over_consumed,
        "completed_orders_without_licenses": completed_without_licenses,
        "checked_at": datetime.utcnow(),
    }
    report["is_healthy"] = not any(
        report[k] for k in (
            "orphaned_order_items",
            "orphaned_licenses",
            "invalid_plan_pricing",
            "over_consumed_licenses",
            "completed_orders_without_licenses",
        )
    )
    if not report["is_healthy"]:
        logger.warning("数据完整性检查发现问题: %s", {k: v for k, v in report.items() if isinstance(v, list) and v})
    return report
