"""
Celery 任务模块：事务邮件
"""
from archplans.tasks.email_tasks import (
    send_welcome_email_task,
    send_purchase_receipt_task,
    send_download_confirmation_task,
    send_upload_alert_task,
)

__all__ = [
    "send_welcome_email_task",
    "send_purchase_receipt_task",
    "send_download_confirmation_task",
    "send_upload_alert_task",
]
