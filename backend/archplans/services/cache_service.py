"""
Redis 缓存：目录列表、精选、分类与后台统计的 JSON 缓存

与限流共用同一 Redis，key 统一加 CACHE_KEY_PREFIX。缓存只是加速：
未启用或 Redis 出错时读返回 None、写返回 False，不向调用方抛异常。
"""
import hashlib
import json
import logging
from typing import Any, Optional

import redis

from archplans.core.config import settings
from archplans.core.redis_client import get_redis

logger = logging.getLogger(__name__)

PREFIX_PLANS = "plans:"


def _client() -> Optional[redis.Redis]:
    return get_redis() if settings.CACHE_ENABLED else None


def _key(name: str) -> str:
    return f"{settings.CACHE_KEY_PREFIX}{name}"


def get(key: str) -> Optional[Any]:
    r = _client()
    if r is None:
        return None
    try:
        raw = r.get(_key(key))
    except redis.RedisError as e:
        logger.debug("缓存读取失败 %s: %s", key, e)
        return None
    return json.loads(raw) if raw is not None else None


def set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """value 需可 JSON 序列化；ttl 默认 CACHE_TTL_LIST 秒"""
    r = _client()
    if r is None:
        return False
    try:
        r.setex(_key(key), ttl or settings.CACHE_TTL_LIST, json.dumps(value, ensure_ascii=False, default=str))
    except redis.RedisError as e:
        logger.debug("缓存写入失败 %s: %s", key, e)
        return False
    return True


def delete(*keys: str) -> int:
    r = _client()
    if r is None or not keys:
        return 0
    try:
        return r.delete(*(_key(k) for k in keys))
    except redis.RedisError as e:
        logger.debug("缓存删除失败 %s: %s", keys, e)
        return 0


def delete_by_prefix(prefix: str) -> int:
    """SCAN 出前缀下全部 key 后批量删除，返回删除数量"""
    r = _client()
    if r is None:
        return 0
    try:
        keys = list(r.scan_iter(match=f"{_key(prefix)}*", count=500))
        return r.delete(*keys) if keys else 0
    except redis.RedisError as e:
        logger.debug("缓存按前缀删除失败 %s: %s", prefix, e)
        return 0


def key_admin_analytics() -> str:
    return "admin:analytics"


def key_plan_list(params: dict) -> str:
    """查询参数排序后取摘要，参数相同的请求命中同一 key"""
    digest = hashlib.md5(json.dumps(params, sort_keys=True, default=str).encode()).hexdigest()
    return f"{PREFIX_PLANS}list:{digest}"


def key_featured_plans(limit: int) -> str:
    return f"{PREFIX_PLANS}featured:{limit}"


def key_categories() -> str:
    return "categories:active"


def invalidate_catalog_cache() -> None:
    """图纸或分类变更后调用"""
    removed = delete_by_prefix(PREFIX_PLANS) + delete(key_categories())
    logger.debug("目录缓存已清除 %s 个 key", removed)


def invalidate_analytics_cache() -> None:
    """订单、图片审核、下载变更后调用"""
    delete(key_admin_analytics())
