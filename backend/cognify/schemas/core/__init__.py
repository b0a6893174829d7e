"""
核心系统Schema模块
包含用户、认证等基础系统相关的Pydantic模型
"""

from .auth import (
    SignupRequest,
    LoginRequest,
    ForgotPasswordRequest,
    TokenResponse,
    MessageResponse,
    ErrorResponse,
    VerifyResponse,
    UserResponse,
    UserListResponse,
)

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
