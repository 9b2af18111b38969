"""
邮件异步任务：欢迎邮件、购买收据、下载确认、后台上传提醒

SMTP 连接或发送失败按指数退避重试最多 3 次。
收据邮件需要查库，使用任务内创建的 engine/session，不能用全局 AsyncSessionLocal。
"""
import asyncio
import logging
import smtplib

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from archplans.celery_app import celery_app
from archplans.core.config import settings
from archplans.core.database import create_task_engine_and_session
from archplans.models.order import Order
from archplans.services import email_service

logger = logging.getLogger(__name__)

RETRY_OPTIONS = dict(
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
)


def _run_async(coro):
    """在同步上下文中运行异步协程（Celery 任务内使用）"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _load_order(order_id: int):
    engine, session_factory = create_task_engine_and_session()
    try:
        async with session_factory() as db:
            result = await db.execute(
                select(Order)
                .options(selectinload(Order.items), selectinload(Order.user))
                .where(Order.id == order_id)
            )
            return result.scalar_one_or_none()
    finally:
        await engine.dispose()


@celery_app.task(name="email.welcome", **RETRY_OPTIONS)
def send_welcome_email_task(to_email: str, name: str) -> bool:
    subject, body = email_service.welcome_message(name)
    return email_service.send_email(to_email, subject, body)


@celery_app.task(name="email.purchase_receipt", **RETRY_OPTIONS)
def send_purchase_receipt_task(order_id: int) -> bool:
    order = _run_async(_load_order(order_id))
    if order is None:
        logger.warning("收据邮件：订单不存在 order_id=%s", order_id)
        return False
    lines = [f"{item.item_title} ({item.license_type.value}) {item.total_price}" for item in order.items]
    name = order.billing_name or (order.user.name if order.user else None) or "Customer"
    subject, body = email_service.purchase_receipt_message(
        name, order.order_number, lines, str(order.total_amount), order.currency
    )
    return email_service.send_email(order.billing_email, subject, body)


@celery_app.task(name="email.download_confirmation", **RETRY_OPTIONS)
def send_download_confirmation_task(to_email: str, name: str, item_title: str, license_type: str, remaining) -> bool:
    subject, body = email_service.download_confirmation_message(
        name, item_title, license_type, "unlimited" if remaining is None else str(remaining)
    )
    return email_service.send_email(to_email, subject, body)


@celery_app.task(name="email.upload_alert", **RETRY_OPTIONS)
def send_upload_alert_task(gallery_number: str, title: str, uploader_email: str) -> bool:
    if not settings.ADMIN_NOTIFY_EMAIL:
        return False
    subject, body = email_service.upload_alert_message(gallery_number, title, uploader_email)
    return email_service.send_email(settings.ADMIN_NOTIFY_EMAIL, subject, body)
