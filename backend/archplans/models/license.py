"""
授权模型：用户对图纸或图库图片的下载权
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from archplans.core.database import Base
from archplans.models.enums import LicenseType


class License(Base):
    """授权表。max_downloads 为空表示不限次数，expires_at 为空表示永久有效"""
    __tablename__ = "licenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True, index=True)
    image_id = Column(Integer, ForeignKey("gallery_images.id"), nullable=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    license_type = Column(SQLEnum(LicenseType), nullable=False)
    license_key = Column(String(80), unique=True, nullable=False, index=True)
    download_count = Column(Integer, default=0, nullable=False)
    max_downloads = Column(Integer, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    commercial_use = Column(Boolean, default=False)
    resale_allowed = Column(Boolean, default=False)
    modification_allowed = Column(Boolean, default=True)
    purchase_price = Column(Numeric(10, 2), default=0)
    currency = Column(String(3), default="USD")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # 关系
    user = relationship("User", back_populates="licenses")
    plan = relationship("Plan")
    image = relationship("GalleryImage")
    order = relationship("Order", back_populates="licenses")
