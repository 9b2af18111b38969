"""
认证相关Schema
"""
import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

from archplans.models.enums import UserRole

_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
_NAME_RE = re.compile(r"^[a-zA-Z\s\-'\.]+$")


class UserCreate(BaseModel):
    """用户注册"""
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2, max_length=50)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        if not _PASSWORD_RE.match(v):
            raise ValueError("密码须同时包含大写字母、小写字母和数字")
        return v

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not _NAME_RE.match(v):
            raise ValueError("姓名只能包含字母、空格、连字符、撇号和句点")
        return v.strip()


class LoginRequest(BaseModel):
    """登录请求"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class UpdatePasswordRequest(BaseModel):
    """修改密码请求"""
    old_password: str
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        if not _PASSWORD_RE.match(v):
            raise ValueError("密码须同时包含大写字母、小写字母和数字")
        return v


class UserProfileResponse(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """用户响应"""
    id: int
    email: str
    name: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserDetailResponse(UserResponse):
    """含资料的用户响应（/me、/verify）"""
    profile: Optional[UserProfileResponse] = None


class TokenPair(BaseModel):
    """访问令牌 + 刷新令牌"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # 访问令牌有效秒数


class AuthResponse(BaseModel):
    """登录/注册响应"""
    user: UserResponse
    tokens: TokenPair
