"""
数据库连接：异步引擎、会话工厂与 FastAPI 依赖
"""
from typing import AsyncGenerator, Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from archplans.core.config import settings

Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    # SQLite 连接不跨事件循环复用
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


def _create_engine() -> AsyncEngine:
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        **_engine_kwargs(settings.DATABASE_URL),
    )


engine = _create_engine()
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """请求级数据库会话"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def create_task_engine_and_session() -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    为 Celery 任务或离线脚本创建独立的 engine/session 工厂。
    必须在任务自己的事件循环中创建，用完后调用 engine.dispose()。
    """
    task_engine = _create_engine()
    factory = async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False)
    return task_engine, factory
