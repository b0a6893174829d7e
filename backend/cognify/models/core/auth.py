"""
认证相关模型定义 - 使用 sys_ 前缀
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from cognify.db.database import Base


class RefreshToken(Base):
    """刷新令牌表 - sys_refresh_tokens"""
    __tablename__ = "sys_refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(1024), unique=True, nullable=False, comment="刷新令牌")
    user_id = Column(String(36), ForeignKey("sys_users.id", ondelete="CASCADE"), index=True, nullable=False, comment="用户ID")
    expires_at = Column(DateTime(timezone=True), index=True, nullable=False, comment="过期时间")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间")

    user = relationship("User")

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id})>"
