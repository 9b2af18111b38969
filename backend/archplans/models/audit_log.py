"""
操作审计日志：后台维护、结算、下载等关键操作
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from archplans.core.database import Base


class AuditLog(Base):
    """审计日志表"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(64), nullable=False, index=True)  # create_plan, checkout, download 等
    resource_type = Column(String(32), nullable=True, index=True)  # plan, order, image, license
    resource_id = Column(String(64), nullable=True)
    detail = Column(Text, nullable=True)  # JSON 或简短描述
    ip = Column(String(64), nullable=True)
    request_id = Column(String(64), nullable=True, index=True)  # 与 X-Request-ID 一致
    created_at = Column(DateTime, server_default=func.now())
