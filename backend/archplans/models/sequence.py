"""
编号序列模型：每类实体每年一行，记录下一个可用序号
"""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.sql import func
from archplans.core.database import Base


class SequenceMixin:
    year = Column(Integer, primary_key=True, autoincrement=False)
    next_sequence = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class PlanSequence(SequenceMixin, Base):
    __tablename__ = "plan_sequences"


class ProjectSequence(SequenceMixin, Base):
    __tablename__ = "project_sequences"


class VisualizationSequence(SequenceMixin, Base):
    __tablename__ = "visualization_sequences"


class GallerySequence(SequenceMixin, Base):
    __tablename__ = "gallery_sequences"
