"""
图纸目录服务：前台查询（筛选、排序、分页、搜索）与后台维护
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.core.exceptions import ConflictError, NotFoundError
from archplans.models.category import Category
from archplans.models.enums import PlanStatus
from archplans.models.plan import Plan, PlanFile, PlanImage, PlanTag
from archplans.schemas.catalog import PlanCreate, PlanFilters, PlanUpdate
from archplans.services.sequence_service import generate_plan_number

logger = logging.getLogger(__name__)

_SORTS = {
    "newest": (Plan.created_at.desc(), Plan.id.desc()),
    "price_asc": (Plan.base_price.asc(), Plan.id.asc()),
    "price_desc": (Plan.base_price.desc(), Plan.id.desc()),
    "sqft_asc": (Plan.square_footage.asc(), Plan.id.asc()),
    "sqft_desc": (Plan.square_footage.desc(), Plan.id.desc()),
    "popular": (Plan.view_count.desc(), Plan.id.desc()),
    "title": (Plan.title.asc(), Plan.id.asc()),
}


def _summary_options():
    return (selectinload(Plan.images), selectinload(Plan.tags))


def _detail_options():
    return (
        selectinload(Plan.images),
        selectinload(Plan.tags),
        selectinload(Plan.files),
        selectinload(Plan.category),
    )


def _published():
    return (Plan.is_active.is_(True), Plan.status == PlanStatus.PUBLISHED)


def _search_clause(term: str):
    like = f"%{term.strip()}%"
    return or_(
        Plan.title.ilike(like),
        Plan.description.ilike(like),
        Plan.plan_number.ilike(like),
        Plan.tags.any(PlanTag.tag.ilike(like)),
    )


def _identifier_clause(identifier: str):
    conds = [Plan.slug == identifier, Plan.plan_number == identifier]
    if identifier.isdigit():
        conds.append(Plan.id == int(identifier))
    return or_(*conds)


class PlanService:
    """图纸服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _filter_conditions(self, filters: PlanFilters) -> list:
        conds = list(_published())
        if filters.category:
            conds.append(Plan.category.has(Category.slug == filters.category))
        if filters.featured is not None:
            conds.append(Plan.is_featured.is_(filters.featured))
        if filters.style:
            conds.append(Plan.style == filters.style.upper())
        if filters.building_type:
            conds.append(Plan.building_type == filters.building_type.upper())
        if filters.min_price is not None:
            conds.append(Plan.base_price >= filters.min_price)
        if filters.max_price is not None:
            conds.append(Plan.base_price <= filters.max_price)
        if filters.min_sqft is not None:
            conds.append(Plan.square_footage >= filters.min_sqft)
        if filters.max_sqft is not None:
            conds.append(Plan.square_footage <= filters.max_sqft)
        if filters.bedrooms is not None:
            conds.append(Plan.bedrooms >= filters.bedrooms)
        if filters.bathrooms is not None:
            conds.append(Plan.bathrooms >= filters.bathrooms)
        if filters.search and filters.search.strip():
            conds.append(_search_clause(filters.search))
        return conds

    async def list_plans(self, filters: PlanFilters) -> tuple[List[Plan], int]:
        """已发布图纸列表，返回 (当前页, 总数)"""
        conds = self._filter_conditions(filters)
        total = await self.db.scalar(select(func.count()).select_from(Plan).where(*conds)) or 0
        stmt = (
            select(Plan)
            .options(*_summary_options())
            .where(*conds)
            .order_by(*_SORTS.get(filters.sort_by, _SORTS["newest"]))
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def featured_plans(self, limit: int = 6) -> List[Plan]:
        result = await self.db.execute(
            select(Plan)
            .options(*_summary_options())
            .where(*_published(), Plan.is_featured.is_(True))
            .order_by(Plan.view_count.desc(), Plan.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def search_plans(self, q: str, limit: int = 20) -> List[Plan]:
        if not q or not q.strip():
            return []
        result = await self.db.execute(
            select(Plan)
            .options(*_summary_options())
            .where(*_published(), _search_clause(q))
            .order_by(Plan.view_count.desc(), Plan.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_plan(self, identifier: str, count_view: bool = True) -> Plan:
        """按 ID、slug 或图纸编号获取已发布图纸，并原子累加浏览次数"""
        plan_id = await self.db.scalar(select(Plan.id).where(*_published(), _identifier_clause(identifier)))
        if plan_id is None:
            raise NotFoundError("图纸不存在")
        if count_view:
            await self.db.execute(
                update(Plan)
                .where(Plan.id == plan_id)
                .values(view_count=Plan.view_count + 1)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        result = await self.db.execute(
            select(Plan).options(*_detail_options()).where(Plan.id == plan_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ---------- 后台维护 ---------- #

    async def admin_list_plans(
        self,
        status: Optional[PlanStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Plan], int]:
        """全部状态的图纸（含已删除）"""
        conds = []
        if status is not None:
            conds.append(Plan.status == status)
        if search and search.strip():
            conds.append(_search_clause(search))
        total = await self.db.scalar(select(func.count()).select_from(Plan).where(*conds)) or 0
        result = await self.db.execute(
            select(Plan)
            .options(*_summary_options())
            .where(*conds)
            .order_by(Plan.created_at.desc(), Plan.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_plan_by_id(self, plan_id: int) -> Plan:
        """后台用：不限状态"""
        result = await self.db.execute(
            select(Plan).options(*_detail_options()).where(Plan.id == plan_id).execution_options(populate_existing=True)
        )
        plan = result.scalar_one_or_none()
        if plan is None:
            raise NotFoundError("图纸不存在")
        return plan

    async def _ensure_slug_free(self, slug: str) -> None:
        if await self.db.scalar(select(Plan.id).where(Plan.slug == slug)) is not None:
            raise ConflictError("slug 已被占用")

    async def _ensure_category(self, category_id: Optional[int]) -> None:
        if category_id is not None and await self.db.get(Category, category_id) is None:
            raise NotFoundError("分类不存在")

    async def create_plan(self, data: PlanCreate) -> Plan:
        """新建图纸（草稿），图纸编号与图纸在同一事务中分配"""
        await self._ensure_slug_free(data.slug)
        await self._ensure_category(data.category_id)
        plan_number = await generate_plan_number(self.db)
        fields = data.model_dump(exclude={"tags", "files", "images"})
        plan = Plan(plan_number=plan_number, status=PlanStatus.DRAFT, **fields)
        plan.files = [PlanFile(sort_order=i, **f.model_dump()) for i, f in enumerate(data.files)]
        plan.images = [PlanImage(sort_order=i, **img.model_dump()) for i, img in enumerate(data.images)]
        plan.tags = [PlanTag(tag=t.strip().lower()) for t in _unique(data.tags)]
        self.db.add(plan)
        await self.db.commit()
        logger.info("新建图纸 %s", plan_number)
        return await self.get_plan_by_id(plan.id)

    async def update_plan(self, plan_id: int, data: PlanUpdate) -> Plan:
        plan = await self.get_plan_by_id(plan_id)
        changes = data.model_dump(exclude_unset=True, exclude={"tags"})
        if "category_id" in changes:
            await self._ensure_category(changes["category_id"])
        if changes.get("style"):
            changes["style"] = changes["style"].upper()
        for key, value in changes.items():
            setattr(plan, key, value)
        if data.tags is not None:
            plan.tags = [PlanTag(tag=t.strip().lower()) for t in _unique(data.tags)]
        await self.db.commit()
        return await self.get_plan_by_id(plan_id)

    async def set_status(self, plan_id: int, status: PlanStatus) -> Plan:
        """发布或归档；首次发布记录 published_at"""
        plan = await self.get_plan_by_id(plan_id)
        plan.status = status
        if status == PlanStatus.PUBLISHED:
            plan.is_active = True
            if plan.published_at is None:
                plan.published_at = datetime.utcnow()
        await self.db.commit()
        return await self.get_plan_by_id(plan_id)

    async def publish_plan(self, plan_id: int) -> Plan:
        return await self.set_status(plan_id, PlanStatus.PUBLISHED)

    async def archive_plan(self, plan_id: int) -> Plan:
        return await self.set_status(plan_id, PlanStatus.ARCHIVED)

    async def delete_plan(self, plan_id: int) -> None:
        """软删除：已售授权仍引用该图纸"""
        plan = await self.get_plan_by_id(plan_id)
        plan.is_active = False
        await self.db.commit()


def _unique(tags: Sequence[str]) -> List[str]:
    seen = []
    for t in tags:
        t = t.strip()
        if t and t.lower() not in [s.lower() for s in seen]:
            seen.append(t)
    return seen
