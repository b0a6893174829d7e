"""
健康检查 API 端点
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from cognify.core.config import settings
from cognify.db.database import get_db

router = APIRouter()


@router.get("/health")
async def health_check(response: Response, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """
    健康检查接口
    检查数据库连接和基本服务状态
    """
    try:
        result = await db.execute(text("SELECT 1"))
        db_status = "healthy" if result.scalar() == 1 else "unhealthy"
    except Exception as e:
        logger.error(f"健康检查：数据库不可用 {e}")
        db_status = "unhealthy"

    if db_status != "healthy":
        response.status_code = 503

    return {
        "status": db_status,
        "checks": {"database": db_status},
        "system": {
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.DEPLOYMENT_ENV,
            "debug_mode": settings.DEBUG,
        },
    }


@router.get("/ping")
async def ping() -> Dict[str, str]:
    """
    简单的 ping 接口
    用于测试 API 是否可达
    """
    return {
        "message": "pong",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
