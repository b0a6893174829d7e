"""
API 路由注册
"""

from fastapi import APIRouter, Depends

from cognify.api.endpoints.system.health import router as health_router
from cognify.api.endpoints.auth import router as auth_router
from cognify.api.endpoints.management.users import router as users_router
from cognify.utils.rate_limit import rate_limit

# 整个 API 统一套用 general 限流策略
api_router = APIRouter(dependencies=[Depends(rate_limit("general"))])

# 注册各个模块的路由
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["authentication"], prefix="/auth")
api_router.include_router(users_router, tags=["users"], prefix="/users")
