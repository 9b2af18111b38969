"""
结算API
"""
import asyncio
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_client_ip, get_request_id, require_checkout_rate_limit
from archplans.core.database import get_db
from archplans.schemas.auth import UserDetailResponse
from archplans.schemas.order import CheckoutRequest, CheckoutResponse
from archplans.services import cache_service, notification_service
from archplans.services.audit_service import log_audit
from archplans.services.checkout_service import CheckoutService
from archplans.services.payment_gateway import PaymentGateway, get_payment_gateway

router = APIRouter()


@router.post("", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    request: Request,
    current_user: UserDetailResponse = Depends(require_checkout_rate_limit),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    创建订单。免费订单直接完成并签发授权（is_free=true）；
    收费订单返回托管支付会话，前端跳转 session_url 付款。
    """
    ip = get_client_ip(request)
    result = await CheckoutService(db, gateway).create_checkout(current_user, body, customer_ip=ip)
    await log_audit(
        db, current_user.id, "checkout", "order", result["order_id"],
        {"order_number": result["order_number"], "amount": result["amount"], "is_free": result["is_free"]},
        ip, get_request_id(request),
    )
    await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    if result["is_free"]:
        await notification_service.notify_purchase_receipt(result["order_id"])
    return result
