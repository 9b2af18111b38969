"""
Redis 客户端：缓存、限流与健康检查共用一个连接池
"""
import logging
from typing import Optional

import redis

from archplans.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def get_redis() -> Optional[redis.Redis]:
    """懒加载；REDIS_URL 无效时返回 None，调用方按 Redis 不可用处理"""
    global _client
    if _client is None:
        try:
            _client = redis.Redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        except ValueError as e:
            logger.warning("REDIS_URL 无效，缓存与限流不生效: %s", e)
    return _client
