"""
目录相关Schema：图纸、项目、效果图、分类
"""
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from archplans.core.config import settings
from archplans.models.enums import PlanStatus, ProjectStatus

PlanSort = Literal["newest", "price_asc", "price_desc", "sqft_asc", "sqft_desc", "popular", "title"]


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    plan_count: int = 0

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=120, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0


class PlanFileIn(BaseModel):
    filename: str
    file_type: str = "FLOOR_PLAN"
    file_format: str
    file_size: int = 0
    url: Optional[str] = None
    storage_key: Optional[str] = None
    description: Optional[str] = None

    @field_validator("file_format")
    @classmethod
    def allowed_format(cls, v: str) -> str:
        fmt = v.strip().lstrip(".").lower()
        if fmt not in settings.allowed_plan_file_types_list:
            raise ValueError(f"不支持的图纸文件格式，允许: {', '.join(settings.allowed_plan_file_types_list)}")
        return fmt


class PlanImageIn(BaseModel):
    url: str
    alt: Optional[str] = None
    image_type: str = "EXTERIOR"
    is_primary: bool = False


class PlanFileResponse(BaseModel):
    id: int
    filename: str
    file_type: str
    file_format: str
    file_size: int
    description: Optional[str] = None
    sort_order: int

    class Config:
        from_attributes = True


class PlanImageResponse(BaseModel):
    id: int
    url: str
    alt: Optional[str] = None
    image_type: str
    is_primary: bool
    sort_order: int

    class Config:
        from_attributes = True


class PlanCreate(BaseModel):
    """后台创建图纸"""
    title: str = Field(..., min_length=3, max_length=200)
    slug: str = Field(..., min_length=3, max_length=250, pattern=r"^[a-z0-9-]+$")
    description: str
    short_description: Optional[str] = None
    square_footage: int = Field(..., gt=0)
    bedrooms: int = Field(0, ge=0)
    bathrooms: float = Field(0, ge=0)
    floors: int = Field(1, ge=1, le=10)
    garage_spaces: int = Field(0, ge=0)
    width: Optional[float] = None
    depth: Optional[float] = None
    style: Optional[str] = None
    building_type: Optional[str] = None
    base_price: float = Field(..., gt=0)
    single_license_price: float = Field(..., ge=0)
    commercial_license_price: float = Field(..., ge=0)
    unlimited_license_price: float = Field(..., ge=0)
    category_id: Optional[int] = None
    project_id: Optional[int] = None
    is_featured: bool = False
    tags: List[str] = []
    files: List[PlanFileIn] = []
    images: List[PlanImageIn] = []

    @field_validator("style", "building_type")
    @classmethod
    def upper(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class PlanUpdate(BaseModel):
    """后台更新图纸（只更新传入的字段）"""
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    short_description: Optional[str] = None
    square_footage: Optional[int] = Field(None, gt=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    floors: Optional[int] = Field(None, ge=1, le=10)
    style: Optional[str] = None
    base_price: Optional[float] = Field(None, gt=0)
    single_license_price: Optional[float] = Field(None, ge=0)
    commercial_license_price: Optional[float] = Field(None, ge=0)
    unlimited_license_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[int] = None
    is_featured: Optional[bool] = None
    tags: Optional[List[str]] = None


class PlanSummary(BaseModel):
    """列表用的图纸摘要"""
    id: int
    plan_number: str
    title: str
    slug: str
    short_description: Optional[str] = None
    square_footage: int
    bedrooms: int
    bathrooms: float
    floors: int
    style: Optional[str] = None
    base_price: float
    single_license_price: float
    commercial_license_price: float
    unlimited_license_price: float
    status: PlanStatus
    is_featured: bool
    view_count: int
    category_id: Optional[int] = None
    primary_image_url: Optional[str] = None
    tags: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("tags", mode="before")
    @classmethod
    def flatten_tags(cls, v):
        return [t if isinstance(t, str) else t.tag for t in (v or [])]


class PlanDetail(PlanSummary):
    description: str
    garage_spaces: int
    width: Optional[float] = None
    depth: Optional[float] = None
    building_type: Optional[str] = None
    project_id: Optional[int] = None
    published_at: Optional[datetime] = None
    category: Optional[CategoryResponse] = None
    files: List[PlanFileResponse] = []
    images: List[PlanImageResponse] = []


class PlanFilters(BaseModel):
    """图纸列表筛选"""
    category: Optional[str] = None  # 分类 slug
    featured: Optional[bool] = None
    style: Optional[str] = None
    building_type: Optional[str] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_sqft: Optional[int] = Field(None, ge=0)
    max_sqft: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    search: Optional[str] = Field(None, max_length=100)
    sort_by: PlanSort = "newest"
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    slug: str = Field(..., min_length=3, max_length=250, pattern=r"^[a-z0-9-]+$")
    description: str
    short_description: Optional[str] = None
    client_name: Optional[str] = None
    location: Optional[str] = None
    project_type: str
    status: ProjectStatus = ProjectStatus.PLANNING
    start_date: Optional[date] = None
    completion_date: Optional[date] = None
    total_area: Optional[float] = Field(None, gt=0)
    budget: Optional[float] = Field(None, ge=0)
    is_featured: bool = False


class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    short_description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    completion_date: Optional[date] = None
    budget: Optional[float] = Field(None, ge=0)
    is_featured: Optional[bool] = None


class VisualizationCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    slug: str = Field(..., min_length=3, max_length=250, pattern=r"^[a-z0-9-]+$")
    description: str
    category: str
    render_type: str = "STILL"
    image_url: Optional[str] = None
    project_id: Optional[int] = None
    is_featured: bool = False


class VisualizationUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: Optional[bool] = None


class VisualizationResponse(BaseModel):
    id: int
    visualization_number: str
    title: str
    slug: str
    description: str
    category: str
    render_type: str
    image_url: Optional[str] = None
    project_id: Optional[int] = None
    is_featured: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectResponse(BaseModel):
    id: int
    project_number: str
    title: str
    slug: str
    description: str
    short_description: Optional[str] = None
    client_name: Optional[str] = None
    location: Optional[str] = None
    project_type: str
    status: ProjectStatus
    start_date: Optional[date] = None
    completion_date: Optional[date] = None
    total_area: Optional[float] = None
    budget: Optional[float] = None
    is_featured: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectDetail(ProjectResponse):
    plans: List[PlanSummary] = []
    visualizations: List[VisualizationResponse] = []
