"""
操作审计服务：记录后台维护、结算、下载等关键操作到 audit_logs 表
"""
import json
import logging
from typing import Any, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.config import settings
from archplans.core.database import AsyncSessionLocal
from archplans.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def log_audit(
    db: AsyncSession,
    user_id: Optional[int],
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    detail: Optional[dict[str, Any]] = None,
    ip: Optional[str] = None,
    request_id: Optional[str] = None,
) -> None:
    """
    写入一条审计日志。未启用 AUDIT_LOG_ENABLED 时跳过。
    先提交调用方的业务事务，审计行在独立会话中写入；写入失败只记警告，
    调用方会话里的对象不受影响。
    """
    if not settings.AUDIT_LOG_ENABLED:
        return
    await db.commit()
    detail_str = json.dumps(detail, ensure_ascii=False, default=str) if isinstance(detail, dict) else (str(detail) if detail else None)
    async with AsyncSessionLocal() as audit_db:
        try:
            audit_db.add(AuditLog(
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=str(resource_id) if resource_id is not None else None,
                detail=detail_str,
                ip=ip,
                request_id=request_id,
            ))
            await audit_db.commit()
        except SQLAlchemyError as e:
            logger.warning("审计日志写入失败 action=%s: %s", action, e)
            await audit_db.rollback()


async def list_audit_logs(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    user_id: Optional[int] = None,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog)
    count_stmt = select(func.count()).select_from(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action)
        count_stmt = count_stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)
        count_stmt = count_stmt.where(AuditLog.resource_type == resource_type)
    if user_id is not None:
        stmt = stmt.where(AuditLog.user_id == user_id)
        count_stmt = count_stmt.where(AuditLog.user_id == user_id)
    total = (await db.execute(count_stmt)).scalar() or 0
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(stmt)
    return list(result.scalars().all()), total
