"""
通知派发：把邮件任务投递到 Celery。
EMAIL_ENABLED 关闭时不投递；投递失败或超时（broker 不可用）只记日志，不影响请求。
"""
import asyncio
import logging
from typing import Any

from archplans.core.config import settings

logger = logging.getLogger(__name__)

# 提交 Celery 任务时的超时（秒），避免 delay() 连接 broker 时无限阻塞
CELERY_SUBMIT_TIMEOUT = 10.0


async def dispatch(task, *args: Any) -> bool:
    if not settings.EMAIL_ENABLED:
        logger.debug("邮件未启用，跳过任务 %s", task.name)
        return False
    try:
        await asyncio.wait_for(asyncio.to_thread(task.delay, *args), timeout=CELERY_SUBMIT_TIMEOUT)
        return True
    except Exception as e:
        logger.warning("邮件任务投递失败 %s: %s", task.name, e)
        return False


async def notify_welcome(email: str, name: str) -> bool:
    from archplans.tasks import send_welcome_email_task
    return await dispatch(send_welcome_email_task, email, name)


async def notify_purchase_receipt(order_id: int) -> bool:
    from archplans.tasks import send_purchase_receipt_task
    return await dispatch(send_purchase_receipt_task, order_id)


async def notify_download(email: str, name: str, item_title: str, license_type: str, remaining) -> bool:
    from archplans.tasks import send_download_confirmation_task
    return await dispatch(send_download_confirmation_task, email, name, item_title, license_type, remaining)


async def notify_upload(gallery_number: str, title: str, uploader_email: str) -> bool:
    from archplans.tasks import send_upload_alert_task
    return await dispatch(send_upload_alert_task, gallery_number, title, uploader_email)
