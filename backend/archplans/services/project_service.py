"""
项目与效果图服务
"""
import logging
from typing import List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.core.exceptions import ConflictError, NotFoundError
from archplans.models.enums import PlanStatus, ProjectStatus
from archplans.models.plan import Plan
from archplans.models.project import Project, Visualization
from archplans.schemas.catalog import ProjectCreate, ProjectUpdate, VisualizationCreate, VisualizationUpdate
from archplans.services.sequence_service import generate_project_number, generate_visualization_number

logger = logging.getLogger(__name__)


def _identifier_clause(model, number_column, identifier: str):
    conds = [model.slug == identifier, number_column == identifier]
    if identifier.isdigit():
        conds.append(model.id == int(identifier))
    return or_(*conds)


class ProjectService:
    """项目服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        featured: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Project], int]:
        conds = [Project.is_published.is_(True)]
        if status is not None:
            conds.append(Project.status == status)
        if featured is not None:
            conds.append(Project.is_featured.is_(featured))
        total = await self.db.scalar(select(func.count()).select_from(Project).where(*conds)) or 0
        result = await self.db.execute(
            select(Project)
            .where(*conds)
            .order_by(Project.is_featured.desc(), Project.created_at.desc(), Project.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_project(self, identifier: str) -> dict:
        """项目详情：附带在售图纸与已发布效果图（显式查询，不走懒加载）"""
        result = await self.db.execute(
            select(Project).where(
                Project.is_published.is_(True),
                _identifier_clause(Project, Project.project_number, identifier),
            )
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("项目不存在")
        plans = await self.db.execute(
            select(Plan)
            .options(selectinload(Plan.images), selectinload(Plan.tags))
            .where(Plan.project_id == project.id, Plan.is_active.is_(True), Plan.status == PlanStatus.PUBLISHED)
            .order_by(Plan.id)
        )
        visualizations = await self.db.execute(
            select(Visualization)
            .where(Visualization.project_id == project.id, Visualization.is_published.is_(True))
            .order_by(Visualization.id)
        )
        return {
            "project": project,
            "plans": list(plans.scalars().all()),
            "visualizations": list(visualizations.scalars().all()),
        }

    async def search_projects(self, q: str, limit: int = 20) -> List[Project]:
        if not q or not q.strip():
            return []
        like = f"%{q.strip()}%"
        result = await self.db.execute(
            select(Project)
            .where(
                Project.is_published.is_(True),
                or_(Project.title.ilike(like), Project.description.ilike(like), Project.location.ilike(like)),
            )
            .order_by(Project.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _get(self, project_id: int) -> Project:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("项目不存在")
        return project

    async def create_project(self, data: ProjectCreate) -> Project:
        if await self.db.scalar(select(Project.id).where(Project.slug == data.slug)) is not None:
            raise ConflictError("slug 已被占用")
        project_number = await generate_project_number(self.db)
        project = Project(project_number=project_number, **data.model_dump())
        self.db.add(project)
        await self.db.commit()
        await self.db.refresh(project)
        logger.info("新建项目 %s", project_number)
        return project

    async def update_project(self, project_id: int, data: ProjectUpdate) -> Project:
        project = await self._get(project_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(project, key, value)
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def delete_project(self, project_id: int) -> None:
        """下架项目，保留记录"""
        project = await self._get(project_id)
        project.is_published = False
        await self.db.commit()


class VisualizationService:
    """效果图服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_visualizations(
        self,
        category: Optional[str] = None,
        project_id: Optional[int] = None,
        featured: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Visualization], int]:
        conds = [Visualization.is_published.is_(True)]
        if category:
            conds.append(Visualization.category == category.upper())
        if project_id is not None:
            conds.append(Visualization.project_id == project_id)
        if featured is not None:
            conds.append(Visualization.is_featured.is_(featured))
        total = await self.db.scalar(select(func.count()).select_from(Visualization).where(*conds)) or 0
        result = await self.db.execute(
            select(Visualization)
            .where(*conds)
            .order_by(Visualization.created_at.desc(), Visualization.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_visualization(self, identifier: str) -> Visualization:
        result = await self.db.execute(
            select(Visualization).where(
                Visualization.is_published.is_(True),
                _identifier_clause(Visualization, Visualization.visualization_number, identifier),
            )
        )
        vis = result.scalar_one_or_none()
        if vis is None:
            raise NotFoundError("效果图不存在")
        return vis

    async def search_visualizations(self, q: str, limit: int = 20) -> List[Visualization]:
        if not q or not q.strip():
            return []
        like = f"%{q.strip()}%"
        result = await self.db.execute(
            select(Visualization)
            .where(
                Visualization.is_published.is_(True),
                or_(Visualization.title.ilike(like), Visualization.description.ilike(like)),
            )
            .order_by(Visualization.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _get(self, vis_id: int) -> Visualization:
        vis = await self.db.get(Visualization, vis_id)
        if vis is None:
            raise NotFoundError("效果图不存在")
        return vis

    async def create_visualization(self, data: VisualizationCreate) -> Visualization:
        if await self.db.scalar(select(Visualization.id).where(Visualization.slug == data.slug)) is not None:
            raise ConflictError("slug 已被占用")
        if data.project_id is not None and await self.db.get(Project, data.project_id) is None:
            raise NotFoundError("项目不存在")
        number = await generate_visualization_number(self.db)
        fields = data.model_dump()
        fields["category"] = fields["category"].upper()
        fields["render_type"] = fields["render_type"].upper()
        vis = Visualization(visualization_number=number, **fields)
        self.db.add(vis)
        await self.db.commit()
        await self.db.refresh(vis)
        logger.info("新建效果图 %s", number)
        return vis

    async def update_visualization(self, vis_id: int, data: VisualizationUpdate) -> Visualization:
        vis = await self._get(vis_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("category"):
            changes["category"] = changes["category"].upper()
        for key, value in changes.items():
            setattr(vis, key, value)
        await self.db.commit()
        await self.db.refresh(vis)
        return vis

    async def delete_visualization(self, vis_id: int) -> None:
        vis = await self._get(vis_id)
        vis.is_published = False
        await self.db.commit()
