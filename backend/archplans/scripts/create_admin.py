"""
创建或提升管理员账号

用法: python -m archplans.scripts.create_admin EMAIL PASSWORD NAME [--super]
邮箱已存在时只修改角色并重置密码。
"""
import argparse
import asyncio
import logging
import sys

import archplans.models  # noqa: F401
from archplans.core.database import Base, create_task_engine_and_session
from archplans.core.logging import setup_logging
from archplans.models.enums import UserRole
from archplans.models.user import User, UserProfile
from archplans.services.auth_service import AuthService, get_password_hash

logger = logging.getLogger(__name__)


async def create_admin(email: str, password: str, name: str, role: UserRole) -> User:
    engine, session_factory = create_task_engine_and_session()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as db:
            user = await AuthService(db).get_user_by_email(email.lower())
            if user is None:
                first_name, _, last_name = name.strip().partition(" ")
                user = User(email=email.lower(), name=name, password_hash=get_password_hash(password), role=role)
                user.profile = UserProfile(first_name=first_name, last_name=last_name or None)
                db.add(user)
                logger.info("创建管理员 %s role=%s", email, role.value)
            else:
                user.role = role
                user.is_active = True
                user.password_hash = get_password_hash(password)
                logger.info("提升已有用户 %s 为 %s", email, role.value)
            await db.commit()
            await db.refresh(user)
            return user
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="创建管理员账号")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("name")
    parser.add_argument("--super", dest="super_admin", action="store_true", help="创建超级管理员")
    args = parser.parse_args(argv)

    if len(args.password) < 8:
        parser.error("密码至少 8 位")
    setup_logging()
    role = UserRole.SUPER_ADMIN if args.super_admin else UserRole.ADMIN
    user = asyncio.run(create_admin(args.email, args.password, args.name, role))
    print(f"管理员就绪: id={user.id} email={user.email} role={user.role.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
