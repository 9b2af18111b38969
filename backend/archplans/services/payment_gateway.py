"""
支付网关：托管收银台（Stripe Checkout）

服务端只传金额与商品描述，拿回会话 ID 与跳转地址，不接触卡号。
Stripe SDK 为同步调用，放到线程中执行。
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import stripe

from archplans.core.config import settings
from archplans.core.exceptions import PaymentProviderError, ServiceError

logger = logging.getLogger(__name__)


@dataclass
class LineItem:
    name: str
    unit_amount: int  # 最小货币单位（分）
    quantity: int = 1
    description: Optional[str] = None


@dataclass
class PaymentSession:
    session_id: str
    url: Optional[str]


def to_minor_units(amount) -> int:
    """金额转为分，四舍五入"""
    return int(round(float(amount) * 100))


class PaymentGateway:
    """支付网关接口；测试中以假实现替换"""

    async def create_checkout_session(
        self,
        line_items: List[LineItem],
        currency: str,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str],
        metadata: Dict[str, str],
    ) -> PaymentSession:
        raise NotImplementedError

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """校验签名并解析回调事件"""
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    def _create(self, params: Dict[str, Any]):
        return stripe.checkout.Session.create(api_key=self.api_key, **params)

    async def create_checkout_session(
        self,
        line_items: List[LineItem],
        currency: str,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str],
        metadata: Dict[str, str],
    ) -> PaymentSession:
        if not self.api_key:
            raise PaymentProviderError("支付服务未配置，请稍后重试")
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {
                            "name": item.name,
                            **({"description": item.description} if item.description else {}),
                        },
                        "unit_amount": item.unit_amount,
                    },
                    "quantity": item.quantity,
                }
                for item in line_items
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "client_reference_id": metadata.get("order_id"),
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = await asyncio.to_thread(self._create, params)
        except stripe.StripeError as e:
            logger.error("创建 Stripe 支付会话失败: %s", e)
            raise PaymentProviderError("支付会话创建失败，请稍后重试")
        return PaymentSession(session_id=session["id"], url=session.get("url"))

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if not signature:
            raise ServiceError("缺少签名")
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret, tolerance=300)
        except stripe.SignatureVerificationError:
            logger.warning("Stripe 回调签名校验失败")
            raise ServiceError("签名校验失败")
        try:
            return json.loads(text)
        except ValueError:
            raise ServiceError("无效的回调内容")


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """FastAPI 依赖：进程内共用一个网关实例"""
    global _gateway
    if _gateway is None:
        _gateway = StripeGateway()
    return _gateway
