"""
订单API（当前用户）
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_current_active_user
from archplans.core.database import get_db
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.common import Page
from archplans.schemas.license import LicenseResponse
from archplans.schemas.order import OrderDetail, OrderResponse
from archplans.services.license_service import downloads_remaining
from archplans.services.order_service import OrderService

router = APIRouter()


def order_detail(order, detail_cls=OrderDetail):
    """订单详情：只列出有效授权"""
    data = detail_cls.model_validate(order).model_dump(exclude={"licenses"})
    titles = {(i.plan_id, i.image_id): i.item_title for i in order.items}
    data["licenses"] = [
        LicenseResponse(
            id=lic.id,
            license_key=lic.license_key,
            license_type=lic.license_type,
            plan_id=lic.plan_id,
            image_id=lic.image_id,
            order_id=lic.order_id,
            item_title=titles.get((lic.plan_id, lic.image_id)),
            download_count=lic.download_count,
            max_downloads=lic.max_downloads,
            downloads_remaining=downloads_remaining(lic),
            expires_at=lic.expires_at,
            is_active=lic.is_active,
            commercial_use=lic.commercial_use,
            resale_allowed=lic.resale_allowed,
            purchase_price=float(lic.purchase_price or 0),
            created_at=lic.created_at,
        )
        for lic in order.licenses
        if lic.is_active
    ]
    return detail_cls(**data)


@router.get("", response_model=Page[OrderResponse])
async def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: UserDetailResponse = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await OrderService(db).list_user_orders(current_user.id, page, page_size)
    return Page[OrderResponse].build([OrderResponse.model_validate(o) for o in orders], total, page, page_size)


@router.get("/{order_id}", response_model=OrderDetail)
async def get_my_order(
    order_id: int,
    current_user: UserDetailResponse = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """只能查看自己的订单，其他订单一律 404"""
    order = await OrderService(db).get_order(order_id, user_id=current_user.id)
    return order_detail(order)
