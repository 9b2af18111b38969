"""
授权与下载控制

访问判定（无副作用）：存在 is_active 且未过期的授权即有访问权，
max_downloads 有值时 downloads_remaining = max_downloads - download_count。

下载计数：consume_download 用一条条件 UPDATE 同时完成校验与自增，
两个并发下载不可能同时通过最后一次额度。
"""
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.core.exceptions import DownloadDeniedError
from archplans.models.download_log import DownloadLog
from archplans.models.enums import ItemType, LicenseType
from archplans.models.license import License
from archplans.models.order import Order, OrderItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LicenseTier:
    license_type: LicenseType
    name: str
    description: str
    price: Decimal  # 图库图片单价；图纸价格取图纸自身字段
    max_downloads: Optional[int]
    expires_days: Optional[int]
    commercial_use: bool
    resale_allowed: bool
    features: List[str] = field(default_factory=list)


LICENSE_TIERS: dict[LicenseType, LicenseTier] = {
    LicenseType.PREVIEW: LicenseTier(
        license_type=LicenseType.PREVIEW,
        name="Preview",
        description="Watermarked low resolution preview for evaluation",
        price=Decimal("0"),
        max_downloads=None,
        expires_days=7,
        commercial_use=False,
        resale_allowed=False,
        features=["Watermarked", "Low resolution", "Personal evaluation only"],
    ),
    LicenseType.STANDARD: LicenseTier(
        license_type=LicenseType.STANDARD,
        name="Standard License",
        description="Single project, personal or client presentation use",
        price=Decimal("29.99"),
        max_downloads=5,
        expires_days=None,
        commercial_use=False,
        resale_allowed=False,
        features=["High resolution", "No watermark", "Single project use", "5 downloads"],
    ),
    LicenseType.COMMERCIAL: LicenseTier(
        license_type=LicenseType.COMMERCIAL,
        name="Commercial License",
        description="Commercial use in marketing and client projects",
        price=Decimal("99.99"),
        max_downloads=10,
        expires_days=None,
        commercial_use=True,
        resale_allowed=False,
        features=["High resolution", "Commercial use", "Multiple projects", "10 downloads"],
    ),
    LicenseType.EXTENDED: LicenseTier(
        license_type=LicenseType.EXTENDED,
        name="Extended License",
        description="Unlimited use including products for resale",
        price=Decimal("199.99"),
        max_downloads=None,
        expires_days=None,
        commercial_use=True,
        resale_allowed=True,
        features=["Original resolution", "Unlimited downloads", "Resale allowed", "Priority support"],
    ),
}

_KEY_ALPHABET = string.ascii_uppercase + string.digits


def _base36(n: int) -> str:
    digits = string.digits + string.ascii_uppercase
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or "0"


def generate_license_key(license_type: LicenseType, order_id: int, item_id: int) -> str:
    """<2 位等级>-<订单>-<明细>-<时间 base36>-<随机>，全大写"""
    rand = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(6))
    return f"{license_type.value[:2]}-{order_id}-{item_id}-{_base36(int(time.time() * 1000))}-{rand}"


def downloads_remaining(license: License) -> Optional[int]:
    if license.max_downloads is None:
        return None
    return max(license.max_downloads - license.download_count, 0)


def _valid_license_clause(now: datetime):
    return (
        License.is_active.is_(True),
        or_(License.expires_at.is_(None), License.expires_at > now),
    )


def _best_license(licenses: Iterable[License]) -> Optional[License]:
    """优先选还有下载额度的，其次等级高的"""
    ranked = sorted(
        licenses,
        key=lambda lic: (downloads_remaining(lic) != 0, LicenseType(lic.license_type).rank),
        reverse=True,
    )
    return ranked[0] if ranked else None


def _access_dict(license: Optional[License]) -> dict:
    if license is None:
        return {"has_access": False}
    return {
        "has_access": True,
        "license_type": license.license_type,
        "downloads_remaining": downloads_remaining(license),
    }


async def _valid_licenses(
    db: AsyncSession,
    user_id: int,
    plan_id: Optional[int] = None,
    image_id: Optional[int] = None,
    min_type: Optional[LicenseType] = None,
) -> List[License]:
    stmt = select(License).where(License.user_id == user_id, *_valid_license_clause(datetime.utcnow()))
    if plan_id is not None:
        stmt = stmt.where(License.plan_id == plan_id)
    if image_id is not None:
        stmt = stmt.where(License.image_id == image_id)
    result = await db.execute(stmt)
    licenses = list(result.scalars().all())
    if min_type is not None:
        licenses = [lic for lic in licenses if LicenseType(lic.license_type).rank >= min_type.rank]
    return licenses


async def get_user_plan_access(db: AsyncSession, user_id: int, plan_id: int) -> dict:
    """用户对图纸的访问权：{has_access, license_type?, downloads_remaining?}"""
    licenses = await _valid_licenses(db, user_id, plan_id=plan_id)
    return _access_dict(_best_license(licenses))


async def get_user_image_access(
    db: AsyncSession,
    user_id: int,
    image_id: int,
    license_type: Optional[LicenseType] = None,
) -> dict:
    """用户对图库图片的访问权；指定 license_type 时只认同级或更高等级的授权"""
    licenses = await _valid_licenses(db, user_id, image_id=image_id, min_type=license_type)
    return _access_dict(_best_license(licenses))


async def find_usable_license(
    db: AsyncSession,
    user_id: int,
    plan_id: Optional[int] = None,
    image_id: Optional[int] = None,
    min_type: Optional[LicenseType] = None,
) -> Optional[License]:
    licenses = await _valid_licenses(db, user_id, plan_id=plan_id, image_id=image_id, min_type=min_type)
    best = _best_license(licenses)
    if best is None or downloads_remaining(best) == 0:
        return None
    return best


async def consume_download(db: AsyncSession, license_id: int) -> License:
    """
    原子消耗一次下载额度（不提交）。
    授权停用、过期或额度用尽时没有行被更新，抛出 DownloadDeniedError。
    """
    now = datetime.utcnow()
    result = await db.execute(
        update(License)
        .where(
            License.id == license_id,
            *_valid_license_clause(now),
            or_(License.max_downloads.is_(None), License.download_count < License.max_downloads),
        )
        .values(download_count=License.download_count + 1, updated_at=now)
        .returning(License.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        logger.info("下载被拒绝 license_id=%s", license_id)
        raise DownloadDeniedError("授权无效、已过期或下载次数已用尽")
    license = await db.get(License, license_id, populate_existing=True)
    return license


def record_download(
    db: AsyncSession,
    license_type: LicenseType,
    user_id: Optional[int] = None,
    plan_id: Optional[int] = None,
    image_id: Optional[int] = None,
    license_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> DownloadLog:
    """登记一条下载记录（不提交）"""
    entry = DownloadLog(
        user_id=user_id,
        plan_id=plan_id,
        image_id=image_id,
        license_id=license_id,
        license_type=license_type,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:300] or None,
    )
    db.add(entry)
    return entry


def build_license(order: Order, item: OrderItem, now: Optional[datetime] = None) -> License:
    """按订单明细与等级策略生成授权（不入库）"""
    now = now or datetime.utcnow()
    license_type = LicenseType(item.license_type)
    tier = LICENSE_TIERS[license_type]
    return License(
        user_id=order.user_id,
        plan_id=item.plan_id if item.item_type == ItemType.PLAN else None,
        image_id=item.image_id if item.item_type == ItemType.IMAGE else None,
        order_id=order.id,
        license_type=license_type,
        license_key=generate_license_key(license_type, order.id, item.id),
        download_count=0,
        max_downloads=tier.max_downloads,
        expires_at=now + timedelta(days=tier.expires_days) if tier.expires_days else None,
        is_active=True,
        commercial_use=tier.commercial_use,
        resale_allowed=tier.resale_allowed,
        modification_allowed=license_type != LicenseType.PREVIEW,
        purchase_price=item.total_price,
        currency=order.currency,
    )


def issue_licenses_for_order(db: AsyncSession, order: Order) -> List[License]:
    """为订单每个明细签发一个授权（不提交）；order.items 须已加载"""
    now = datetime.utcnow()
    licenses = [build_license(order, item, now) for item in order.items]
    db.add_all(licenses)
    logger.info("订单 %s 签发授权 %s 个", order.order_number, len(licenses))
    return licenses


async def deactivate_order_licenses(db: AsyncSession, order_id: int) -> int:
    """退款/争议：停用订单下全部授权（不提交）"""
    result = await db.execute(
        update(License)
        .where(License.order_id == order_id, License.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def list_user_licenses(db: AsyncSession, user_id: int) -> List[dict]:
    """用户全部授权（新的在前），附带图纸/图片标题与剩余次数"""
    result = await db.execute(
        select(License)
        .options(selectinload(License.plan), selectinload(License.image))
        .where(License.user_id == user_id)
        .order_by(License.created_at.desc(), License.id.desc())
    )
    items = []
    for lic in result.scalars().all():
        target = lic.plan or lic.image
        items.append({
            "id": lic.id,
            "license_key": lic.license_key,
            "license_type": lic.license_type,
            "plan_id": lic.plan_id,
            "image_id": lic.image_id,
            "order_id": lic.order_id,
            "item_title": target.title if target else None,
            "download_count": lic.download_count,
            "max_downloads": lic.max_downloads,
            "downloads_remaining": downloads_remaining(lic),
            "expires_at": lic.expires_at,
            "is_active": lic.is_active,
            "commercial_use": lic.commercial_use,
            "resale_allowed": lic.resale_allowed,
            "purchase_price": float(lic.purchase_price or 0),
            "created_at": lic.created_at,
        })
    return items
