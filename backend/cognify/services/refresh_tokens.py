"""
刷新令牌存储
对 sys_refresh_tokens 的增删查，以及原子化的令牌轮换
"""

from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cognify.models import RefreshToken


class RefreshTokenStore:
    """基于数据库会话的刷新令牌存储"""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
        self.db.add(record)
        await self.db.commit()
        return record

    async def find_by_token(self, token: str) -> Optional[RefreshToken]:
        result = await self.db.execute(select(RefreshToken).where(RefreshToken.token == token))
        return result.scalar_one_or_none()

    async def delete_by_token(self, token: str) -> int:
        """
        删除所有匹配的令牌记录
        令牌不存在时不报错，返回删除的行数
        """
        result = await self.db.execute(delete(RefreshToken).where(RefreshToken.token == token))
        await self.db.commit()
        return result.rowcount or 0

    async def rotate(self, old_token: str, new_token: str, user_id: str, expires_at: datetime) -> bool:
        """
        令牌轮换：删除旧令牌并写入新令牌，在同一事务中提交

        旧令牌已被其他请求轮换（删除 0 行）时回滚并返回 False；
        写入新令牌失败时回滚，旧令牌的删除同样不生效
        """
        try:
            result = await self.db.execute(delete(RefreshToken).where(RefreshToken.token == old_token))
            if not result.rowcount:
                await self.db.rollback()
                logger.warning(f"刷新令牌轮换失败：旧令牌已不存在 user_id={user_id}")
                return False

            self.db.add(RefreshToken(token=new_token, user_id=user_id, expires_at=expires_at))
            await self.db.commit()
            return True
        except Exception:
            await self.db.rollback()
            raise

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """清理已过期的刷新令牌"""
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(delete(RefreshToken).where(RefreshToken.expires_at <= now))
        await self.db.commit()
        return result.rowcount or 0
