"""
通用依赖：当前用户、能力校验、限流、客户端 IP
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.core.config import settings
from archplans.core.database import get_db
from archplans.core.permissions import Capability, has_capability
from archplans.schemas.auth import UserDetailResponse
from archplans.services.auth_service import AuthService, verify_access_token
from archplans.services.rate_limit_service import (
    check_and_incr_checkout,
    check_and_incr_download,
    check_and_incr_login,
)

# auto_error=False：未带令牌时由下面的依赖统一返回 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)

_UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="无效的认证凭据",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_client_ip(request: Request) -> Optional[str]:
    """优先取反向代理透传的 X-Forwarded-For 第一个地址"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserDetailResponse:
    """获取当前用户信息；令牌缺失、无效、过期均为 401"""
    payload = verify_access_token(token) if token else None
    if payload is None:
        raise _UNAUTHORIZED
    user = await AuthService(db).get_user_with_profile(payload["user_id"])
    if user is None:
        raise _UNAUTHORIZED
    return UserDetailResponse.model_validate(user)


async def get_current_active_user(
    current_user: UserDetailResponse = Depends(get_current_user),
) -> UserDetailResponse:
    """获取当前活跃用户"""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="账号已停用")
    return current_user


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[UserDetailResponse]:
    """可匿名的接口：令牌缺失或无效时视为匿名，不报错"""
    payload = verify_access_token(token) if token else None
    if payload is None:
        return None
    user = await AuthService(db).get_user_with_profile(payload["user_id"])
    if user is None or not user.is_active:
        return None
    return UserDetailResponse.model_validate(user)


def require_capability(capability: Capability):
    """能力校验依赖工厂：未登录 401，缺少能力 403"""

    async def _dependency(
        current_user: UserDetailResponse = Depends(get_current_active_user),
    ) -> UserDetailResponse:
        if not has_capability(current_user.role, capability):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="权限不足")
        return current_user

    return _dependency


async def require_checkout_rate_limit(
    current_user: UserDetailResponse = Depends(get_current_active_user),
) -> UserDetailResponse:
    """结算限流：超出每小时次数返回 429。"""
    allowed, n, limit = check_and_incr_checkout(current_user.id)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"结算请求过于频繁（每小时上限 {limit}），请稍后再试",
        )
    return current_user


async def require_download_rate_limit(
    request: Request,
    current_user: Optional[UserDetailResponse] = Depends(get_optional_user),
) -> Optional[UserDetailResponse]:
    """下载限流：登录用户按用户，匿名按 IP。"""
    subject = f"user:{current_user.id}" if current_user else f"ip:{get_client_ip(request)}"
    allowed, n, limit = check_and_incr_download(subject)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"下载过于频繁（每小时上限 {limit}），请稍后再试",
        )
    return current_user


async def require_login_rate_limit(request: Request) -> None:
    """登录限流：按 IP 每分钟尝试次数。"""
    allowed, n, limit = check_and_incr_login(get_client_ip(request) or "unknown")
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="登录尝试过于频繁，请稍后再试",
        )
