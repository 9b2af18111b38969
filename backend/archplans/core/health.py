"""
健康检查：数据库、Redis、MinIO 连通性，每项返回 (是否可用, 说明)
"""
import logging
from typing import Tuple

from sqlalchemy import text

from archplans.core.config import settings

logger = logging.getLogger(__name__)

CheckResult = Tuple[bool, str]


def _failed(name: str, e: Exception) -> CheckResult:
    logger.warning("健康检查 %s 失败: %s", name, e)
    return False, str(e)


async def check_db() -> CheckResult:
    from archplans.core.database import engine

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return _failed("database", e)
    return True, "ok"


def check_redis() -> CheckResult:
    from archplans.core.redis_client import get_redis

    r = get_redis()
    if r is None:
        return False, "REDIS_URL 无效"
    try:
        r.ping()
    except Exception as e:
        return _failed("redis", e)
    return True, "ok"


def check_minio() -> CheckResult:
    from archplans.services.storage_service import get_minio_client

    try:
        exists = get_minio_client().bucket_exists(settings.MINIO_BUCKET_NAME)
    except Exception as e:
        return _failed("minio", e)
    if not exists:
        return False, f"存储桶 {settings.MINIO_BUCKET_NAME} 不存在"
    return True, "ok"
