"""
FastAPI 依赖注入工具 - 身份派生和权限控制
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cognify.core.auth_context import AuthContext, derive_auth_context
from cognify.core.config import settings
from cognify.core.errors import AppError
from cognify.db.database import get_db
from cognify.services.auth import AuthService
from cognify.utils.tokens import TokenCodec

__all__ = [
    "get_db",
    "get_token_codec",
    "get_auth",
    "get_auth_service",
    "require_user",
    "require_roles",
]

_codec = TokenCodec(settings.ALGORITHM)


def get_token_codec() -> TokenCodec:
    return _codec


async def get_auth(
    request: Request,
    codec: TokenCodec = Depends(get_token_codec),
) -> AuthContext:
    """
    获取当前请求的身份对象

    每个请求只解析一次 Authorization 头，结果缓存在 request.state.auth；
    无令牌或令牌无效时返回匿名身份，不会抛出异常
    """
    cached = getattr(request.state, "auth", None)
    if isinstance(cached, AuthContext):
        return cached

    auth = derive_auth_context(request.headers.get("authorization"), codec, settings.JWT_SECRET)
    request.state.auth = auth
    return auth


async def get_auth_service(
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> AuthService:
    return AuthService(db, settings, codec=codec)


async def require_user(auth: AuthContext = Depends(get_auth)) -> AuthContext:
    """
    要求请求必须携带有效的访问令牌

    异常:
        401: 未认证
    """
    if not auth.is_authenticated:
        raise AppError("Unauthorized", status_code=401, code="UNAUTHORIZED")
    return auth


def require_roles(*roles: str):
    """
    要求用户拥有任一指定角色

    异常:
        401: 未认证
        403: 权限不足
    """

    async def dependency(auth: AuthContext = Depends(require_user)) -> AuthContext:
        if not auth.has_role(*roles):
            raise AppError("Forbidden", status_code=403, code="FORBIDDEN", details={"required": list(roles)})
        return auth

    return dependency
