"""
分类服务
"""
from typing import List

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.exceptions import ConflictError
from archplans.models.category import Category
from archplans.models.enums import PlanStatus
from archplans.models.plan import Plan
from archplans.schemas.catalog import CategoryCreate


async def list_categories(db: AsyncSession) -> List[dict]:
    """启用的分类及其在售图纸数量"""
    plan_count = func.count(Plan.id).label("plan_count")
    result = await db.execute(
        select(Category, plan_count)
        .outerjoin(
            Plan,
            and_(
                Plan.category_id == Category.id,
                Plan.is_active.is_(True),
                Plan.status == PlanStatus.PUBLISHED,
            ),
        )
        .where(Category.is_active.is_(True))
        .group_by(Category.id)
        .order_by(Category.sort_order, Category.name)
    )
    return [
        {
            "id": c.id,
            "name": c.name,
            "slug": c.slug,
            "description": c.description,
            "parent_id": c.parent_id,
            "plan_count": count,
        }
        for c, count in result.all()
    ]


async def create_category(db: AsyncSession, data: CategoryCreate) -> Category:
    exists = await db.scalar(
        select(Category.id).where((Category.slug == data.slug) | (Category.name == data.name))
    )
    if exists is not None:
        raise ConflictError("分类名称或 slug 已存在")
    category = Category(**data.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category
