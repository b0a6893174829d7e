"""
项目所有Pydantic Schema定义
按功能模块组织在子目录中

导入结构示例：
    from cognify.schemas.core import SignupRequest, TokenResponse
"""

from .core import *

# 导出所有Schema类型
__all__ = [
    "SignupRequest",
    "LoginRequest",
    "ForgotPasswordRequest",
    "TokenResponse",
    "MessageResponse",
    "ErrorResponse",
    "VerifyResponse",
    "UserResponse",
    "UserListResponse",
]
