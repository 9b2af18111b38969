"""
图库图片模型：单张可授权购买的图片
"""
from sqlalchemy import Column, Integer, String, Text, BigInteger, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from archplans.core.database import Base
from archplans.models.enums import ImageStatus, ImageCategory


class GalleryImage(Base):
    """图库图片表"""
    __tablename__ = "gallery_images"

    id = Column(Integer, primary_key=True, index=True)
    gallery_number = Column(String(20), unique=True, nullable=False, index=True)  # GAL-YYYY-####
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SQLEnum(ImageCategory), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    storage_key = Column(String(500), nullable=True)  # 上传到 MinIO 时的对象键
    mime_type = Column(String(50), nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    file_size = Column(BigInteger, nullable=True)
    status = Column(SQLEnum(ImageStatus), default=ImageStatus.PENDING, nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    uploaded_by = relationship("User")
