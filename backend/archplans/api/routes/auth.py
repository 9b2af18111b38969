"""
认证相关API
"""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from archplans.api.deps import (
    get_client_ip,
    get_current_active_user,
    get_current_user,
    get_request_id,
    require_login_rate_limit,
)
from archplans.core.database import get_db
from archplans.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshTokenRequest,
    UpdatePasswordRequest,
    UserCreate,
    UserDetailResponse,
    UserResponse,
)
from archplans.services import notification_service
from archplans.services.audit_service import log_audit
from archplans.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """用户注册，成功后直接返回令牌对"""
    user, tokens = await AuthService(db).register_user(user_data)
    await notification_service.notify_welcome(user.email, user.name or user.email)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(require_login_rate_limit)])
async def login(
    payload: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """邮箱密码登录；账号不存在、已停用、密码错误统一返回 401"""
    user, tokens = await AuthService(db).login(payload.email, payload.password)
    await log_audit(db, user.id, "login", "user", user.id, None, get_client_ip(request), get_request_id(request))
    return AuthResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    payload: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db),
):
    """刷新令牌换新令牌对，旧刷新令牌随即作废"""
    user, tokens = await AuthService(db).refresh(payload.refresh_token)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: UserDetailResponse = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """退出登录：清除服务端保存的刷新令牌"""
    await AuthService(db).logout(current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/verify", response_model=UserDetailResponse)
async def verify(current_user: UserDetailResponse = Depends(get_current_active_user)):
    """校验访问令牌并返回当前用户（含资料）"""
    return current_user


@router.get("/me", response_model=UserDetailResponse)
async def read_users_me(current_user: UserDetailResponse = Depends(get_current_active_user)):
    """获取当前用户信息"""
    return current_user


@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def update_password(
    body: UpdatePasswordRequest,
    request: Request,
    current_user: UserDetailResponse = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """修改密码，其他会话的刷新令牌同时作废"""
    await AuthService(db).change_password(current_user.id, body.old_password, body.new_password)
    await log_audit(db, current_user.id, "change_password", "user", current_user.id, None, get_client_ip(request), get_request_id(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
