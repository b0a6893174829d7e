"""
认证相关的 Pydantic 模型
用于请求/响应的数据验证
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from cognify.utils.tokens import TokenClaims


class SignupRequest(BaseModel):
    """注册请求模型"""
    name: str = Field(..., min_length=1, max_length=100, description="显示名称")
    username: str = Field(..., min_length=1, max_length=50, description="用户名")
    email: str = Field(..., min_length=3, max_length=255, description="邮箱")
    password: str = Field(..., min_length=1, description="密码")


class LoginRequest(BaseModel):
    """登录请求模型"""
    handle: str = Field(..., description="用户名或邮箱")
    password: str = Field(..., description="密码")


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., description="注册邮箱")


class TokenResponse(BaseModel):
    """令牌响应模型"""
    token: str


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


class VerifyResponse(BaseModel):
    user: TokenClaims


class UserResponse(BaseModel):
    """用户响应模型"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    name: str
    roles: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class UserListResponse(BaseModel):
    """用户列表响应模型"""
    users: List[UserResponse]
    total: int
    skip: int
    limit: int
    has_more: bool
