"""
审计日志Schema
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    detail: Optional[str] = None
    ip: Optional[str] = None
    request_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
