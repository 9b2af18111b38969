"""
结算服务：解析购物车、按下单时价格建单，免费订单直接完成，
收费订单创建托管支付会话
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.config import settings
from archplans.core.exceptions import ConflictError, NotFoundError, PaymentProviderError, ServiceError
from archplans.models.enums import ImageStatus, ItemType, LicenseType, OrderStatus, PaymentStatus, PlanStatus
from archplans.models.gallery import GalleryImage
from archplans.models.order import Order, OrderItem
from archplans.models.plan import Plan
from archplans.schemas.auth import UserResponse
from archplans.schemas.order import CheckoutItem, CheckoutRequest
from archplans.services import license_service
from archplans.services.order_service import OrderService, generate_order_number, transition
from archplans.services.payment_gateway import LineItem, PaymentGateway, to_minor_units

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def plan_license_price(plan: Plan, license_type: LicenseType) -> Decimal:
    """图纸按授权等级取价；PREVIEW 免费"""
    prices = {
        LicenseType.PREVIEW: ZERO,
        LicenseType.STANDARD: plan.single_license_price,
        LicenseType.COMMERCIAL: plan.commercial_license_price,
        LicenseType.EXTENDED: plan.unlimited_license_price,
    }
    return Decimal(str(prices[license_type])).quantize(Decimal("0.01"))


def image_license_price(license_type: LicenseType) -> Decimal:
    return license_service.LICENSE_TIERS[license_type].price


class CheckoutService:
    """结算服务类"""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway

    async def _resolve_item(self, user_id: int, item: CheckoutItem) -> OrderItem:
        """校验条目并按当前价格生成订单明细"""
        tier = license_service.LICENSE_TIERS[item.license_type]
        if item.plan_id is not None:
            plan = await self.db.scalar(
                select(Plan).where(
                    Plan.id == item.plan_id,
                    Plan.is_active.is_(True),
                    Plan.status == PlanStatus.PUBLISHED,
                )
            )
            if plan is None:
                raise NotFoundError(f"图纸 {item.plan_id} 不存在或未上架")
            owned = await license_service.find_usable_license(
                self.db, user_id, plan_id=plan.id, min_type=item.license_type
            )
            price = plan_license_price(plan, item.license_type)
            target = dict(
                item_type=ItemType.PLAN,
                plan_id=plan.id,
                item_title=plan.title[:200],
                item_description=f"{plan.plan_number} · {tier.name}",
            )
        else:
            image = await self.db.scalar(
                select(GalleryImage).where(
                    GalleryImage.id == item.image_id,
                    GalleryImage.is_active.is_(True),
                    GalleryImage.status == ImageStatus.APPROVED,
                )
            )
            if image is None:
                raise NotFoundError(f"图片 {item.image_id} 不存在或未上架")
            owned = await license_service.find_usable_license(
                self.db, user_id, image_id=image.id, min_type=item.license_type
            )
            price = image_license_price(item.license_type)
            target = dict(
                item_type=ItemType.IMAGE,
                image_id=image.id,
                item_title=image.title,
                item_description=f"{image.gallery_number} · {tier.name}",
            )
        if owned is not None:
            raise ConflictError(f"已拥有「{target['item_title']}」的有效授权")
        return OrderItem(
            license_type=item.license_type,
            quantity=1,
            unit_price=price,
            total_price=price,
            **target,
        )

    async def create_checkout(
        self,
        user: UserResponse,
        request: CheckoutRequest,
        customer_ip: Optional[str] = None,
    ) -> dict:
        """
        建单并返回：
        免费 → {is_free: True, order_id, ...}，订单与授权同一事务完成；
        收费 → {session_id, session_url, order_id, amount, currency}。
        支付服务失败时订单取消并抛 PaymentProviderError（502，用户可重试）。
        """
        keys = [(i.plan_id, i.image_id) for i in request.items]
        if len(set(keys)) != len(keys):
            raise ServiceError("购物车中有重复条目")

        items: List[OrderItem] = [await self._resolve_item(user.id, i) for i in request.items]
        subtotal = sum((it.total_price for it in items), ZERO)
        billing = request.billing
        order = Order(
            order_number=generate_order_number(),
            user_id=user.id,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            subtotal=subtotal,
            tax_amount=ZERO,
            total_amount=subtotal,
            currency=settings.CURRENCY.upper(),
            billing_email=(billing.email if billing and billing.email else user.email),
            billing_name=(billing.name if billing and billing.name else user.name or user.email),
            billing_street=billing.street if billing else None,
            billing_city=billing.city if billing else None,
            billing_state=billing.state if billing else None,
            billing_zip=billing.zip if billing else None,
            billing_country=billing.country.upper() if billing and billing.country else None,
            customer_ip=customer_ip,
            items=items,
        )
        self.db.add(order)
        await self.db.flush()

        if subtotal == ZERO:
            transition(order, OrderStatus.COMPLETED)
            order.payment_status = PaymentStatus.PAID
            order.completed_at = datetime.utcnow()
            license_service.issue_licenses_for_order(self.db, order)
            await self.db.commit()
            logger.info("免费订单完成 %s user_id=%s", order.order_number, user.id)
            return self._result(order, is_free=True)

        await self.db.commit()
        base_url = (request.return_url or settings.SITE_URL).rstrip("/")
        metadata = {"order_id": str(order.id), "user_id": str(user.id), "order_number": order.order_number}
        line_items = [
            LineItem(name=it.item_title, description=it.item_description, unit_amount=to_minor_units(it.unit_price))
            for it in items
        ]
        try:
            session = await self.gateway.create_checkout_session(
                line_items=line_items,
                currency=order.currency,
                success_url=f"{base_url}/purchase/success?session_id={{CHECKOUT_SESSION_ID}}&order_id={order.id}",
                cancel_url=f"{base_url}/checkout?cancelled=1&order_id={order.id}",
                customer_email=order.billing_email,
                metadata=metadata,
            )
        except PaymentProviderError:
            await OrderService(self.db).fail_order(order.id)
            raise

        transition(order, OrderStatus.PROCESSING)
        order.payment_status = PaymentStatus.PROCESSING
        order.payment_session_id = session.session_id
        await self.db.commit()
        logger.info("创建支付会话 order=%s session=%s", order.order_number, session.session_id)
        return self._result(order, session_id=session.session_id, session_url=session.url)

    @staticmethod
    def _result(order: Order, is_free: bool = False, session_id: Optional[str] = None,
                session_url: Optional[str] = None) -> dict:
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "is_free": is_free,
            "session_id": session_id,
            "session_url": session_url,
            "amount": float(order.total_amount),
            "currency": order.currency,
        }
