"""
限流：结算、下载按用户（匿名下载按 IP），登录按 IP，Redis 固定窗口计数

未启用或 Redis 不可用时放行。
"""
import logging
import time
from typing import NamedTuple, Union

import redis

from archplans.core.config import settings
from archplans.core.redis_client import get_redis

logger = logging.getLogger(__name__)

HOUR = 3600
MINUTE = 60


class RateLimitResult(NamedTuple):
    allowed: bool
    count: int
    limit: int


def _hit(bucket: str, subject: Union[int, str], limit: int, window: int) -> RateLimitResult:
    if not settings.RATE_LIMIT_ENABLED:
        return RateLimitResult(True, 0, limit)
    r = get_redis()
    if r is None:
        return RateLimitResult(True, 0, limit)
    key = f"rate:{bucket}:{subject}:{int(time.time()) // window}"
    try:
        pipe = r.pipeline()
        pipe.incr(key)
        pipe.expire(key, window * 2)
        count = pipe.execute()[0]
    except redis.RedisError as e:
        logger.warning("限流计数失败，放行 %s: %s", key, e)
        return RateLimitResult(True, 0, limit)
    if count > limit:
        logger.info("触发限流 bucket=%s subject=%s count=%s limit=%s", bucket, subject, count, limit)
    return RateLimitResult(count <= limit, count, limit)


def check_and_incr_checkout(user_id: int) -> RateLimitResult:
    return _hit("checkout:user", user_id, settings.RATE_LIMIT_CHECKOUT_PER_HOUR, HOUR)


def check_and_incr_download(subject: Union[int, str]) -> RateLimitResult:
    """subject 为 user:<id> 或 ip:<addr>"""
    return _hit("download", subject, settings.RATE_LIMIT_DOWNLOAD_PER_HOUR, HOUR)


def check_and_incr_login(ip: str) -> RateLimitResult:
    return _hit("login:ip", ip, settings.RATE_LIMIT_LOGIN_PER_MINUTE, MINUTE)
