"""
项目与效果图模型
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, Float, Boolean, DateTime, Date, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from archplans.core.database import Base
from archplans.models.enums import ProjectStatus


class Project(Base):
    """项目表"""
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    project_number = Column(String(20), unique=True, nullable=False, index=True)  # PRJ-YYYY-####
    title = Column(String(200), nullable=False)
    slug = Column(String(250), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(300), nullable=True)
    client_name = Column(String(200), nullable=True)
    location = Column(String(200), nullable=True)
    project_type = Column(String(50), nullable=False)
    status = Column(SQLEnum(ProjectStatus), default=ProjectStatus.PLANNING, nullable=False)
    start_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)
    total_area = Column(Float, nullable=True)
    budget = Column(Numeric(12, 2), nullable=True)
    is_featured = Column(Boolean, default=False)
    is_published = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # 关系
    plans = relationship("Plan", back_populates="project")
    visualizations = relationship("Visualization", back_populates="project")


class Visualization(Base):
    """效果图（3D 渲染）表"""
    __tablename__ = "visualizations"

    id = Column(Integer, primary_key=True, index=True)
    visualization_number = Column(String(20), unique=True, nullable=False, index=True)  # VIS-YYYY-####
    title = Column(String(200), nullable=False)
    slug = Column(String(250), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, index=True)  # EXTERIOR, INTERIOR, AERIAL, ...
    render_type = Column(String(50), nullable=False)  # STILL, PANORAMA, ANIMATION
    image_url = Column(String(500), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    is_featured = Column(Boolean, default=False)
    is_published = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="visualizations")
