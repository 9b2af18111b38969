"""
编号生成：PA-2025-0001 形式的年度流水号

每类实体每年一行计数器。分配分两步，都在调用方事务内完成：
1. INSERT ... ON CONFLICT DO NOTHING 保证当年计数行存在（初始为 1）；
2. UPDATE ... SET next_sequence = next_sequence + 1 RETURNING next_sequence，
   单条语句完成读取与自增，并发分配不会拿到相同序号。
实体插入失败回滚时，计数一起回滚，不留空号。
"""
import logging
from datetime import datetime
from typing import Optional, Type

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.models.sequence import (
    SequenceMixin,
    PlanSequence,
    ProjectSequence,
    VisualizationSequence,
    GallerySequence,
)
from archplans.models.plan import Plan
from archplans.models.project import Visualization

logger = logging.getLogger(__name__)

PLAN_PREFIX = "PA"
PROJECT_PREFIX = "PRJ"
VISUALIZATION_PREFIX = "VIS"
GALLERY_PREFIX = "GAL"


def format_sequence_number(prefix: str, year: int, sequence: int) -> str:
    """PREFIX-YYYY-#### ，序号至少 4 位补零"""
    return f"{prefix}-{year}-{sequence:04d}"


def _insert_ignore(db: AsyncSession, model: Type[SequenceMixin], year: int):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model)
    else:
        raise RuntimeError(f"不支持的数据库方言: {dialect}")
    return stmt.values(year=year, next_sequence=1).on_conflict_do_nothing(index_elements=["year"])


async def allocate_sequence(
    db: AsyncSession,
    model: Type[SequenceMixin],
    year: Optional[int] = None,
) -> int:
    """原子分配当年下一个序号，返回分配到的整数"""
    year = year or datetime.now().year
    await db.execute(_insert_ignore(db, model, year))
    result = await db.execute(
        update(model)
        .where(model.year == year)
        .values(next_sequence=model.next_sequence + 1)
        .returning(model.next_sequence)
    )
    allocated = result.scalar_one() - 1
    logger.debug("分配序号 %s year=%s seq=%s", model.__tablename__, year, allocated)
    return allocated


async def _generate(db: AsyncSession, model: Type[SequenceMixin], prefix: str, year: Optional[int]) -> str:
    year = year or datetime.now().year
    seq = await allocate_sequence(db, model, year)
    return format_sequence_number(prefix, year, seq)


async def generate_plan_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _generate(db, PlanSequence, PLAN_PREFIX, year)


async def generate_project_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _generate(db, ProjectSequence, PROJECT_PREFIX, year)


async def generate_visualization_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _generate(db, VisualizationSequence, VISUALIZATION_PREFIX, year)


async def generate_gallery_number(db: AsyncSession, year: Optional[int] = None) -> str:
    return await _generate(db, GallerySequence, GALLERY_PREFIX, year)


async def get_current_sequences(db: AsyncSession, year: Optional[int] = None) -> dict:
    """各类实体当年的下一个序号（尚无计数行时为 1），只读"""
    year = year or datetime.now().year
    data = {"year": year}
    for key, model in (
        ("plan_sequence", PlanSequence),
        ("visualization_sequence", VisualizationSequence),
        ("project_sequence", ProjectSequence),
        ("gallery_sequence", GallerySequence),
    ):
        value = await db.scalar(select(model.next_sequence).where(model.year == year))
        data[key] = value or 1
    return data


async def is_unique_plan_number(db: AsyncSession, plan_number: str) -> bool:
    existing = await db.scalar(select(Plan.id).where(Plan.plan_number == plan_number))
    return existing is None


async def is_unique_visualization_number(db: AsyncSession, visualization_number: str) -> bool:
    existing = await db.scalar(
        select(Visualization.id).where(Visualization.visualization_number == visualization_number)
    )
    return existing is None
