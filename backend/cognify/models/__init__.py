"""
数据库模型定义 - 模块化结构
系统表使用 sys_ 前缀
"""

from cognify.db.database import Base

# 核心系统模型 (sys_ 前缀)
from .core import User, UserRole, RefreshToken

__all__ = [
    "Base",
    "User",
    "UserRole",
    "RefreshToken",
]
