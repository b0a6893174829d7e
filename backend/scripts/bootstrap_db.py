"""
初始化数据库
建表、写入测试账户（instructor / student / admin）、清理过期的刷新令牌

用法: python scripts/bootstrap_db.py [--skip-seed]
"""

import argparse
import asyncio
import os
import sys
from typing import Dict, List

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cognify.core.config import settings
from cognify.db.database import AsyncSessionLocal, engine
from cognify.models import Base, User, UserRole
from cognify.models.core.user import ROLE_ADMIN, ROLE_INSTRUCTOR, ROLE_STUDENT
from cognify.services.refresh_tokens import RefreshTokenStore
from cognify.utils.security import hash_password

SEED_ACCOUNTS: List[Dict[str, str]] = [
    {"username": "instructor", "name": "Test Instructor", "email": "instructor@test.com", "role": ROLE_INSTRUCTOR},
    {"username": "student", "name": "Test Student", "email": "student@test.com", "role": ROLE_STUDENT},
    {"username": "admin", "name": "Test Admin", "email": "admin@test.com", "role": ROLE_ADMIN},
]


async def seed_users(db: AsyncSession, password: str) -> List[User]:
    """已存在的账户保持不变，只补齐缺失的角色"""
    users = []
    for account in SEED_ACCOUNTS:
        result = await db.execute(select(User).where(User.username == account["username"]))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                username=account["username"],
                name=account["name"],
                email=account["email"],
                password=hash_password(password),
                roles=[UserRole(role=account["role"])],
            )
            db.add(user)
            logger.info(f"已创建测试账户: {account['username']}")
        elif account["role"] not in user.role_names:
            user.roles.append(UserRole(role=account["role"]))
        users.append(user)

    await db.commit()
    return users


async def main(skip_seed: bool = False) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据库表结构已就绪")

    async with AsyncSessionLocal() as db:
        if not skip_seed:
            await seed_users(db, settings.SEED_DEFAULT_PASSWORD)
        removed = await RefreshTokenStore(db).purge_expired()
        logger.info(f"已清理过期刷新令牌 {removed} 条")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="初始化 Cognify 数据库")
    parser.add_argument("--skip-seed", action="store_true", help="只建表，不写入测试账户")
    args = parser.parse_args()
    asyncio.run(main(skip_seed=args.skip_seed))
