"""
订单服务：状态机、完成订单签发授权、支付回调处理、订单查询

状态流转：
    PENDING    -> PROCESSING | COMPLETED | CANCELLED
    PROCESSING -> COMPLETED | CANCELLED
    COMPLETED  -> CANCELLED（退款/争议）
其余流转抛 InvalidTransitionError。
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.core.exceptions import InvalidTransitionError, NotFoundError
from archplans.models.enums import OrderStatus, PaymentStatus
from archplans.models.order import Order
from archplans.services import license_service

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
}


def generate_order_number(now: Optional[datetime] = None) -> str:
    """PLS-YYYYMMDD-XXXXXXXX"""
    now = now or datetime.utcnow()
    return f"PLS-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(OrderStatus(current), frozenset())


def transition(order: Order, target: OrderStatus) -> None:
    """校验并修改订单状态（不提交）"""
    if not can_transition(order.status, target):
        raise InvalidTransitionError(f"订单状态不能从 {OrderStatus(order.status).value} 变为 {target.value}")
    order.status = target


def _order_options():
    return (selectinload(Order.items), selectinload(Order.licenses))


class OrderService:
    """订单服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_id: int, user_id: Optional[int] = None) -> Order:
        """user_id 不为空时只能查自己的订单，别人的订单同样返回 404"""
        stmt = select(Order).options(*_order_options()).where(Order.id == order_id)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("订单不存在")
        return order

    async def list_user_orders(self, user_id: int, page: int = 1, page_size: int = 20) -> tuple[List[Order], int]:
        conds = [Order.user_id == user_id]
        total = await self.db.scalar(select(func.count()).select_from(Order).where(*conds)) or 0
        result = await self.db.execute(
            select(Order)
            .where(*conds)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def admin_list_orders(
        self,
        status: Optional[OrderStatus] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Order], int]:
        """status 为空表示全部"""
        conds = []
        if status is not None:
            conds.append(Order.status == status)
        if search and search.strip():
            like = f"%{search.strip()}%"
            conds.append(or_(Order.order_number.ilike(like), Order.billing_email.ilike(like), Order.billing_name.ilike(like)))
        if date_from is not None:
            conds.append(Order.created_at >= date_from)
        if date_to is not None:
            conds.append(Order.created_at <= date_to)
        total = await self.db.scalar(select(func.count()).select_from(Order).where(*conds)) or 0
        result = await self.db.execute(
            select(Order)
            .where(*conds)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def _find_order(self, order_id: Any = None, session_id: Optional[str] = None,
                          payment_intent_id: Optional[str] = None) -> Optional[Order]:
        conds = []
        if order_id is not None and str(order_id).isdigit():
            conds.append(Order.id == int(order_id))
        if session_id:
            conds.append(Order.payment_session_id == session_id)
        if payment_intent_id:
            conds.append(Order.payment_intent_id == payment_intent_id)
        if not conds:
            return None
        result = await self.db.execute(select(Order.id).where(or_(*conds)).limit(1))
        found = result.scalar_one_or_none()
        return await self.get_order(found) if found is not None else None

    async def complete_order(self, order_id: int, payment_intent_id: Optional[str] = None) -> Optional[Order]:
        """
        标记订单完成并为每个明细签发授权，同一事务提交。
        状态抢占用条件 UPDATE 完成，重复回调或并发回调只会签发一次；
        已完成的订单返回 None。
        """
        values = {
            "status": OrderStatus.COMPLETED,
            "payment_status": PaymentStatus.PAID,
            "completed_at": datetime.utcnow(),
        }
        if payment_intent_id:
            values["payment_intent_id"] = payment_intent_id
        claimed = await self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.in_([OrderStatus.PENDING, OrderStatus.PROCESSING]))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            # 条件不满足时 UPDATE 未改动任何行，无需回滚
            current = await self.db.scalar(select(Order.status).where(Order.id == order_id))
            if current is None:
                raise NotFoundError("订单不存在")
            if current == OrderStatus.COMPLETED:
                logger.info("订单 %s 已完成，忽略重复确认", order_id)
                return None
            raise InvalidTransitionError(f"订单状态不能从 {OrderStatus(current).value} 变为 COMPLETED")
        order = await self.get_order(order_id)
        license_service.issue_licenses_for_order(self.db, order)
        await self.db.commit()
        logger.info("订单完成 %s", order.order_number)
        return await self.get_order(order_id)

    async def fail_order(self, order_id: int) -> Order:
        """支付失败：取消订单"""
        order = await self.get_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            return order
        transition(order, OrderStatus.CANCELLED)
        order.payment_status = PaymentStatus.FAILED
        await self.db.commit()
        logger.info("订单支付失败 %s", order.order_number)
        return order

    async def refund_order(self, order_id: int, reason: Optional[str] = None) -> Order:
        """退款或争议：取消订单并停用已签发的授权"""
        order = await self.get_order(order_id)
        if order.status != OrderStatus.CANCELLED:
            transition(order, OrderStatus.CANCELLED)
        order.payment_status = PaymentStatus.REFUNDED
        if reason:
            order.internal_notes = ((order.internal_notes or "") + f"\n{reason}").strip()
        deactivated = await license_service.deactivate_order_licenses(self.db, order.id)
        await self.db.commit()
        logger.warning("订单退款/争议 %s 停用授权 %s 个", order.order_number, deactivated)
        return await self.get_order(order_id)

    async def admin_update_status(self, order_id: int, target: OrderStatus, internal_notes: Optional[str] = None) -> Order:
        """后台改状态：完成会签发授权，已完成订单取消视为退款"""
        order = await self.get_order(order_id)
        if internal_notes is not None:
            order.internal_notes = internal_notes
        if target == OrderStatus.COMPLETED:
            if order.status == OrderStatus.COMPLETED:
                raise InvalidTransitionError("订单已完成")
            await self.db.commit()
            await self.complete_order(order_id)
            return await self.get_order(order_id)
        if target == OrderStatus.CANCELLED and order.status == OrderStatus.COMPLETED:
            await self.db.commit()
            return await self.refund_order(order_id, reason="admin refund")
        transition(order, target)
        if target == OrderStatus.CANCELLED and order.payment_status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            order.payment_status = PaymentStatus.FAILED
        elif target == OrderStatus.PROCESSING:
            order.payment_status = PaymentStatus.PROCESSING
        await self.db.commit()
        return await self.get_order(order_id)

    async def handle_payment_event(self, event: Dict[str, Any]) -> tuple[Optional[Order], bool]:
        """
        处理支付回调事件，返回 (受影响的订单, 是否本次刚完成)。
        未识别的事件或找不到订单时订单为 None；刚完成时调用方发送收据邮件。
        """
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        logger.info("支付回调 %s", event_type)

        if event_type == "checkout.session.completed":
            if obj.get("payment_status") not in (None, "paid", "no_payment_required"):
                return None, False
            order = await self._find_order(metadata.get("order_id"), session_id=obj.get("id"))
            return await self._complete_found(order, obj.get("payment_intent"))

        if event_type == "payment_intent.succeeded":
            order = await self._find_order(metadata.get("order_id"), payment_intent_id=obj.get("id"))
            return await self._complete_found(order, obj.get("id"))

        if event_type == "payment_intent.payment_failed":
            order = await self._find_order(metadata.get("order_id"), payment_intent_id=obj.get("id"))
            if order is None or order.status == OrderStatus.COMPLETED:
                return order, False
            return await self.fail_order(order.id), False

        if event_type == "charge.dispute.created":
            order = await self._find_order(None, payment_intent_id=obj.get("payment_intent"))
            if order is None:
                logger.warning("争议找不到对应订单 payment_intent=%s", obj.get("payment_intent"))
                return None, False
            return await self.refund_order(order.id, reason=f"dispute {obj.get('id')}: {obj.get('reason')}"), False

        logger.info("未处理的回调类型: %s", event_type)
        return None, False

    async def _complete_found(self, order: Optional[Order], payment_intent_id: Optional[str]) -> tuple[Optional[Order], bool]:
        if order is None:
            logger.warning("支付回调找不到对应订单")
            return None, False
        order_id = order.id
        completed = await self.complete_order(order_id, payment_intent_id)
        if completed is None:
            return await self.get_order(order_id), False
        return completed, True
