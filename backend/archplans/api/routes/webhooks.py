"""
支付回调API
"""
import asyncio

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import get_request_id
from archplans.core.database import get_db
from archplans.services import cache_service, notification_service
from archplans.services.audit_service import log_audit
from archplans.services.order_service import OrderService
from archplans.services.payment_gateway import PaymentGateway, get_payment_gateway

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Stripe 回调：签名校验失败 400；订单完成时签发授权并发送收据"""
    payload = await request.body()
    event = gateway.construct_event(payload, request.headers.get("Stripe-Signature"))
    order, just_completed = await OrderService(db).handle_payment_event(event)
    if order is not None:
        await log_audit(
            db, order.user_id, f"webhook:{event.get('type')}", "order", order.id,
            {"status": order.status, "payment_status": order.payment_status},
            None, get_request_id(request),
        )
        await asyncio.to_thread(cache_service.invalidate_analytics_cache)
    if just_completed:
        await notification_service.notify_purchase_receipt(order.id)
    return {"received": True}
