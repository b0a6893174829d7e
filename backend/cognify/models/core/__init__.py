"""
核心系统模型模块
包含用户、角色、刷新令牌等认证基础模型
"""

from cognify.models.core.user import User, UserRole, ROLES, ROLE_STUDENT, ROLE_INSTRUCTOR, ROLE_ADMIN
from cognify.models.core.auth import RefreshToken

__all__ = ["User", "UserRole", "RefreshToken", "ROLES", "ROLE_STUDENT", "ROLE_INSTRUCTOR", "ROLE_ADMIN"]
