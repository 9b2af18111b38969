"""
下载记录模型
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from archplans.core.database import Base
from archplans.models.enums import LicenseType


class DownloadLog(Base):
    """下载记录表（预览下载的 user_id 可为空）"""
    __tablename__ = "download_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True, index=True)
    image_id = Column(Integer, ForeignKey("gallery_images.id"), nullable=True, index=True)
    license_id = Column(Integer, ForeignKey("licenses.id"), nullable=True)
    license_type = Column(SQLEnum(LicenseType), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(300), nullable=True)
    downloaded_at = Column(DateTime, server_default=func.now(), index=True)

    user = relationship("User")
    plan = relationship("Plan")
    image = relationship("GalleryImage")
