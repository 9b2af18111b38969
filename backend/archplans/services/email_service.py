"""
邮件服务：SMTP 发送纯文本通知邮件
"""
import logging
import smtplib
from email.message import EmailMessage

from archplans.core.config import settings

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """发送邮件。EMAIL_ENABLED 关闭时只记日志并返回 False；发送失败抛异常，由任务记录。"""
    if not settings.EMAIL_ENABLED:
        logger.info("邮件未启用，跳过发送 to=%s subject=%s", to_email, subject)
        return False
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM or settings.SMTP_USER
    msg["To"] = to_email
    msg.set_content(body)

    with smtplib.SMTP_SSL(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=15) as smtp:
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(msg)
    logger.info("邮件已发送 to=%s subject=%s", to_email, subject)
    return True


def welcome_message(name: str) -> tuple[str, str]:
    subject = "Welcome to Pulse Architects"
    body = (
        f"Hi {name},\n\n"
        "Your account is ready. Browse our plan catalog and gallery at "
        f"{settings.SITE_URL}.\n\n"
        "Pulse Architects"
    )
    return subject, body


def purchase_receipt_message(name: str, order_number: str, lines: list[str], total: str, currency: str) -> tuple[str, str]:
    subject = f"Your order {order_number}"
    items = "\n".join(f"  - {line}" for line in lines)
    body = (
        f"Hi {name},\n\n"
        f"Thank you for your purchase. Order {order_number}:\n{items}\n\n"
        f"Total: {total} {currency}\n\n"
        f"Your licenses and downloads: {settings.SITE_URL}/account/downloads\n"
    )
    return subject, body


def download_confirmation_message(name: str, item_title: str, license_type: str, remaining: str) -> tuple[str, str]:
    subject = f"Download confirmation: {item_title}"
    body = (
        f"Hi {name},\n\n"
        f"You downloaded \"{item_title}\" under a {license_type} license.\n"
        f"Downloads remaining: {remaining}\n"
    )
    return subject, body


def upload_alert_message(gallery_number: str, title: str, uploader_email: str) -> tuple[str, str]:
    subject = f"New gallery image pending review: {gallery_number}"
    body = f"{uploader_email} uploaded \"{title}\" ({gallery_number}). Review it in the admin dashboard.\n"
    return subject, body
