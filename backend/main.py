"""
Cognify 后端应用主入口
FastAPI 应用配置和启动
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from cognify.api import api_router
from cognify.core.config import settings
from cognify.core.errors import register_error_handlers
from cognify.core.logging_setup import setup_logging
from cognify.core.middleware import RequestIdMiddleware, RequestLoggingMiddleware, SecurityHeadersMiddleware
from cognify.db.database import close_db, init_db
from cognify.utils.rate_limit import build_rate_limiters, start_rate_limiters, stop_rate_limiters


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理
    - 启动时：初始化日志和数据库，启动限流计数桶的定期清理
    - 关闭时：停止清理任务，释放数据库连接
    """
    setup_logging()
    logger.info("应用启动中...")

    await init_db()
    start_rate_limiters(app.state.rate_limiters)

    logger.info("应用启动完成")
    yield
    logger.info("应用关闭中...")

    await stop_rate_limiters(app.state.rate_limiters)
    await close_db()
    logger.info("应用已关闭")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Cognify Academy 认证与授权 API 服务",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.rate_limiters = build_rate_limiters(settings)

    # 配置 CORS
    origins = [str(origin) for origin in settings.CORS_ORIGINS]
    if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
        origins.append(settings.FRONTEND_URL)
    if settings.DEBUG:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_origin_regex=r"^http://(localhost|127\.0\.0\.1)(:\d+)?$",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    elif origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_error_handlers(app)

    # 注册 API 路由
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/")
    async def root() -> Dict[str, Any]:
        """根路径，返回应用信息"""
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs" if settings.DEBUG else None,
            "health": f"{settings.API_V1_STR}/health",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.BACKEND_RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
