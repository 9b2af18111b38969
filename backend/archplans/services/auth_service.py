"""
认证服务（直接使用 bcrypt，避免 passlib 与 bcrypt 版本不兼容）

访问令牌为 15 分钟有效的 JWT；刷新令牌为随机串，库里只存 SHA-256，
每次刷新都轮换，旧令牌通过条件更新作废，只能使用一次。
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from jose import jwt, JWTError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from archplans.core.config import settings
from archplans.core.exceptions import AuthenticationError, ConflictError
from archplans.models.user import User, UserProfile
from archplans.schemas.auth import UserCreate, TokenPair

logger = logging.getLogger(__name__)

# bcrypt 最多 72 字节，超长密码需截断（与注册/登录一致）
BCRYPT_MAX_BYTES = 72
ACCESS_TOKEN_TYPE = "access"
INVALID_CREDENTIALS = "邮箱或密码错误"


def _truncate_password_72(password: str) -> bytes:
    """将密码截断为 72 字节（UTF-8），返回 bytes 供 bcrypt 使用"""
    b = password.encode("utf-8")
    if len(b) <= BCRYPT_MAX_BYTES:
        return b
    return b[:BCRYPT_MAX_BYTES]


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_truncate_password_72(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """生成密码哈希"""
    return bcrypt.hashpw(_truncate_password_72(password), bcrypt.gensalt()).decode("utf-8")


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """创建访问令牌：sub=用户 ID，附带 email、role"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    role = user.role.value if hasattr(user.role, "value") else str(user.role)
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> Optional[dict]:
    """校验访问令牌，成功返回 payload；签名错误、过期、类型不符一律返回 None"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        return None
    try:
        payload["user_id"] = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return payload


def _split_name(name: str) -> tuple[str, Optional[str]]:
    parts = name.strip().split(None, 1)
    first = parts[0] if parts else name
    last = parts[1] if len(parts) > 1 else None
    return first, last


class AuthService:
    """认证服务类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """根据邮箱获取用户（邮箱不区分大小写）"""
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user_with_profile(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User).options(selectinload(User.profile)).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """验证用户：不存在、已停用、密码错误都返回 None"""
        user = await self.get_user_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    async def _issue_tokens(self, user: User) -> TokenPair:
        """签发新的令牌对并保存刷新令牌哈希（不提交）"""
        refresh_token = secrets.token_urlsafe(48)
        user.refresh_token_hash = hash_refresh_token(refresh_token)
        user.refresh_token_expires_at = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        return TokenPair(
            access_token=create_access_token(user),
            refresh_token=refresh_token,
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    async def register_user(self, user_data: UserCreate) -> tuple[User, TokenPair]:
        """注册用户并直接登录"""
        email = user_data.email.lower()
        if await self.get_user_by_email(email):
            raise ConflictError("该邮箱已注册")

        first_name, last_name = _split_name(user_data.name)
        user = User(
            email=email,
            password_hash=get_password_hash(user_data.password),
            name=user_data.name,
            last_login_at=datetime.utcnow(),
        )
        user.profile = UserProfile(first_name=first_name, last_name=last_name)
        self.db.add(user)
        await self.db.flush()
        tokens = await self._issue_tokens(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("新用户注册 user_id=%s", user.id)
        return user, tokens

    async def login(self, email: str, password: str) -> tuple[User, TokenPair]:
        user = await self.authenticate_user(email, password)
        if not user:
            raise AuthenticationError(INVALID_CREDENTIALS)
        user.last_login_at = datetime.utcnow()
        tokens = await self._issue_tokens(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user, tokens

    async def refresh(self, refresh_token: str) -> tuple[User, TokenPair]:
        """
        用刷新令牌换新的令牌对。未知、过期、已轮换过的令牌都返回 401，
        客户端收到后应退出登录。
        """
        old_hash = hash_refresh_token(refresh_token)
        result = await self.db.execute(select(User).where(User.refresh_token_hash == old_hash))
        user = result.scalar_one_or_none()
        now = datetime.utcnow()
        if (
            user is None
            or not user.is_active
            or user.refresh_token_expires_at is None
            or user.refresh_token_expires_at <= now
        ):
            raise AuthenticationError("刷新令牌无效或已过期，请重新登录")

        user_id = user.id
        new_token = secrets.token_urlsafe(48)
        swapped = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token_hash == old_hash)
            .values(
                refresh_token_hash=hash_refresh_token(new_token),
                refresh_token_expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            )
            .execution_options(synchronize_session=False)
        )
        if swapped.rowcount != 1:
            # 并发刷新中另一方已经轮换，UPDATE 未改动任何行
            logger.warning("刷新令牌重复使用 user_id=%s", user_id)
            raise AuthenticationError("刷新令牌无效或已过期，请重新登录")
        await self.db.commit()
        await self.db.refresh(user)
        tokens = TokenPair(
            access_token=create_access_token(user),
            refresh_token=new_token,
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
        return user, tokens

    async def logout(self, user_id: int) -> None:
        """作废服务端保存的刷新令牌"""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token_hash=None, refresh_token_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def get_current_user(self, token: str) -> User:
        """根据访问令牌获取当前用户（含资料）"""
        payload = verify_access_token(token)
        if payload is None:
            raise AuthenticationError("无效的认证凭据")
        user = await self.get_user_with_profile(payload["user_id"])
        if user is None:
            raise AuthenticationError("无效的认证凭据")
        return user

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """修改密码，同时作废刷新令牌（其他会话需重新登录）"""
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(old_password, user.password_hash):
            raise AuthenticationError("原密码错误")
        user.password_hash = get_password_hash(new_password)
        user.refresh_token_hash = None
        user.refresh_token_expires_at = None
        await self.db.commit()
