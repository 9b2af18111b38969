"""
Celery 应用：事务邮件走独立的 email 队列

启动 worker：celery -A archplans.celery_app worker -Q email -l info
"""
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from celery import Celery
from kombu import Queue

from archplans.core.config import settings

EMAIL_QUEUE = "email"


def _redis_url(url: str) -> str:
    """rediss:// 缺少 ssl_cert_reqs 时 Celery 的 Redis 后端拒绝启动，补上 CERT_NONE"""
    if not url.lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    query.setdefault("ssl_cert_reqs", ["CERT_NONE"])
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


celery_app = Celery(
    "archplans",
    broker=_redis_url(settings.CELERY_BROKER_URL or settings.REDIS_URL),
    backend=_redis_url(settings.CELERY_RESULT_BACKEND or settings.REDIS_URL),
    include=["archplans.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_queues=(Queue(EMAIL_QUEUE),),
    task_default_queue=EMAIL_QUEUE,
    task_routes={"email.*": {"queue": EMAIL_QUEUE}},
    # worker 异常退出时任务重新入队
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    result_expires=3600,
)
