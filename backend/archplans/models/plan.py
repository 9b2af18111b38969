"""
图纸模型：图纸、图纸文件、效果图、标签
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, Float, Boolean, DateTime, BigInteger, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from archplans.core.database import Base
from archplans.models.enums import PlanStatus


class Plan(Base):
    """图纸表"""
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    plan_number = Column(String(20), unique=True, nullable=False, index=True)  # PA-YYYY-####
    title = Column(String(200), nullable=False)
    slug = Column(String(250), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(300), nullable=True)

    # 规格
    square_footage = Column(Integer, nullable=False)
    bedrooms = Column(Integer, default=0)
    bathrooms = Column(Float, default=0)
    floors = Column(Integer, default=1)
    garage_spaces = Column(Integer, default=0)
    width = Column(Float, nullable=True)
    depth = Column(Float, nullable=True)
    style = Column(String(50), nullable=True, index=True)  # MODERN, TRADITIONAL, ...
    building_type = Column(String(50), nullable=True)

    # 定价
    base_price = Column(Numeric(10, 2), nullable=False)
    single_license_price = Column(Numeric(10, 2), nullable=False)      # STANDARD
    commercial_license_price = Column(Numeric(10, 2), nullable=False)  # COMMERCIAL
    unlimited_license_price = Column(Numeric(10, 2), nullable=False)   # EXTENDED

    status = Column(SQLEnum(PlanStatus), default=PlanStatus.DRAFT, nullable=False, index=True)
    is_featured = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    view_count = Column(Integer, default=0)
    published_at = Column(DateTime, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # 关系
    category = relationship("Category", back_populates="plans")
    project = relationship("Project", back_populates="plans")
    files = relationship("PlanFile", back_populates="plan", cascade="all, delete-orphan", order_by="PlanFile.sort_order")
    images = relationship("PlanImage", back_populates="plan", cascade="all, delete-orphan", order_by="PlanImage.sort_order")
    tags = relationship("PlanTag", back_populates="plan", cascade="all, delete-orphan")

    @property
    def primary_image_url(self):
        """主图 URL；images 须已预加载"""
        if not self.images:
            return None
        primary = next((img for img in self.images if img.is_primary), self.images[0])
        return primary.url


class PlanFile(Base):
    """图纸文件表（PDF、DWG 等）"""
    __tablename__ = "plan_files"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_type = Column(String(50), nullable=False)  # FLOOR_PLAN, ELEVATION, SECTION, ...
    file_format = Column(String(20), nullable=False)  # pdf, dwg
    file_size = Column(BigInteger, default=0)
    url = Column(String(500), nullable=True)
    storage_key = Column(String(500), nullable=True)  # MinIO 对象键，为空时使用 url
    description = Column(String(300), nullable=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())

    plan = relationship("Plan", back_populates="files")


class PlanImage(Base):
    """图纸展示图表"""
    __tablename__ = "plan_images"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    alt = Column(String(200), nullable=True)
    image_type = Column(String(30), default="EXTERIOR")
    is_primary = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0)

    plan = relationship("Plan", back_populates="images")


class PlanTag(Base):
    """图纸标签表"""
    __tablename__ = "plan_tags"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String(50), nullable=False, index=True)

    plan = relationship("Plan", back_populates="tags")
