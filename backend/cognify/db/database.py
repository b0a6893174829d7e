"""
数据库配置和连接管理
SQLAlchemy 异步引擎和会话管理
"""

from typing import Any, AsyncGenerator, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from cognify.core.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy 基类"""
    pass


# 确保 DATABASE_URL 不为 None
if not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL 未配置。请检查 .env 文件中的数据库配置。")


def _engine_options(url: str) -> Dict[str, Any]:
    """按数据库方言生成引擎参数（SQLite 不支持连接池大小与 server_settings）"""
    if url.startswith("sqlite"):
        return {"echo": settings.SQLALCHEMY_ECHO}
    return {
        "echo": settings.SQLALCHEMY_ECHO,
        "pool_size": settings.POSTGRES_MAX_CONNECTIONS,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT_SECONDS,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "client_encoding": "utf8",
                "statement_timeout": str(settings.POSTGRES_STATEMENT_TIMEOUT),
            }
        },
    }


def build_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, **_engine_options(url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# 创建异步引擎
engine = build_engine(str(settings.DATABASE_URL))

# 创建异步会话工厂
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话的依赖函数
    在 FastAPI 依赖注入中使用
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    初始化数据库表结构

    注意：仅在开发环境或显式开启 AUTO_CREATE_TABLES 时建表，
    生产环境应使用 Alembic 迁移。
    """
    if not (settings.DEBUG or settings.AUTO_CREATE_TABLES):
        logger.info("生产环境：跳过自动建表，请使用 Alembic 迁移")
        return

    import cognify.models  # noqa: F401  注册所有模型

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据库表结构已就绪")


async def close_db() -> None:
    """关闭数据库连接"""
    await engine.dispose()
