"""
应用配置管理
从环境变量加载配置，提供类型安全的配置访问
"""

import json
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Union
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator, model_validator

from cognify.utils.tokens import parse_duration

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """应用配置类，从环境变量加载所有配置"""

    # ==================== 项目信息 ====================
    PROJECT_NAME: str = Field(default="Cognify Academy API")
    VERSION: str = Field(default="1.0.0")
    API_V1_STR: str = Field(default="/api/v1")

    # ==================== 部署环境 ====================
    # development, docker, production；兼容 NODE_ENV
    DEPLOYMENT_ENV: str = Field(
        default="development",
        validation_alias=AliasChoices("DEPLOYMENT_ENV", "NODE_ENV"),
    )

    # ==================== 服务器配置 ====================
    BACKEND_HOST: str = Field(default="0.0.0.0")
    BACKEND_PORT: int = Field(default=3333)
    BACKEND_RELOAD: bool = Field(default=True)  # 开发模式热重载

    # ==================== JWT 配置 ====================
    # 两个密钥都必须配置，缺失时进程无法启动
    JWT_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_EXPIRATION: str = Field(
        default="1h",
        validation_alias=AliasChoices("ACCESS_TOKEN_EXPIRY", "JWT_EXPIRATION"),
    )
    JWT_REFRESH_EXPIRATION: str = Field(
        default="7d",
        validation_alias=AliasChoices("REFRESH_TOKEN_EXPIRY", "JWT_REFRESH_EXPIRATION"),
    )
    ALGORITHM: str = Field(default="HS256")

    # ==================== Cookie 配置 ====================
    REFRESH_TOKEN_COOKIE_NAME: str = Field(default="refreshToken")
    COOKIE_DOMAIN: Optional[str] = Field(default=None)

    # ==================== 调试配置 ====================
    DEBUG: bool = Field(default=True)
    LOG_LEVEL: str = Field(default="INFO")

    # ==================== CORS 配置 ====================
    FRONTEND_URL: Optional[str] = Field(default=None)
    CORS_ORIGINS: List[str] = Field(
        default=[
            "https://www.cognify.academy",
            "https://cognify.academy",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """解析CORS_ORIGINS，支持JSON字符串或列表"""
        if isinstance(v, str):
            try:
                # 尝试解析JSON
                return json.loads(v)
            except json.JSONDecodeError:
                # 如果不是JSON，尝试按逗号分割
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==================== 数据库配置 ====================
    POSTGRES_USER: str = Field(default="cognify")
    POSTGRES_PASSWORD: str = Field(default="change_me")
    POSTGRES_DB: str = Field(default="cognify")
    POSTGRES_HOST: str = Field(default="127.0.0.1")
    POSTGRES_PORT: str = Field(default="5432")
    POSTGRES_MAX_CONNECTIONS: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=20)
    DB_POOL_TIMEOUT_SECONDS: int = Field(default=30)
    POSTGRES_STATEMENT_TIMEOUT: int = Field(default=30000)
    DATABASE_DRIVER: str = Field(default="asyncpg")

    # 数据库URL - 优先使用环境变量中的值
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info) -> Optional[str]:
        """构建数据库连接 URL"""
        if v:
            return v

        # 否则从各个组件构建
        values = info.data
        driver = values.get("DATABASE_DRIVER", "asyncpg")
        username = values.get("POSTGRES_USER")
        password = values.get("POSTGRES_PASSWORD")
        host = values.get("POSTGRES_HOST")
        port = values.get("POSTGRES_PORT")
        db = values.get("POSTGRES_DB")

        if all([driver, username, password, host, port, db]):
            return f"postgresql+{driver}://{username}:{password}@{host}:{port}/{db}"
        return None

    # ==================== Redis 配置 ====================
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_CONNECT_TIMEOUT: int = Field(default=5)               # 连接超时秒数

    # ==================== 限流配置 ====================
    # memory: 进程内计数；redis: 多实例共享计数（不可用时回退到内存）
    RATE_LIMIT_BACKEND: str = Field(default="memory")
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = Field(default=60.0)
    RATE_LIMIT_GENERAL_MAX: int = Field(default=100)
    RATE_LIMIT_GENERAL_WINDOW_SECONDS: int = Field(default=15 * 60)
    RATE_LIMIT_AUTH_MAX: int = Field(default=5)
    RATE_LIMIT_AUTH_WINDOW_SECONDS: int = Field(default=15 * 60)
    RATE_LIMIT_STRICT_MAX: int = Field(default=10)
    RATE_LIMIT_STRICT_WINDOW_SECONDS: int = Field(default=60)

    # ==================== 数据库调试配置 ====================
    SQLALCHEMY_ECHO: bool = Field(default=False)
    AUTO_CREATE_TABLES: bool = Field(default=False)

    # ==================== 种子账户配置 ====================
    SEED_DEFAULT_PASSWORD: str = Field(default="password123")

    @property
    def is_production(self) -> bool:
        return self.DEPLOYMENT_ENV.lower() in {"production", "prod"}

    @property
    def access_token_ttl(self) -> timedelta:
        return parse_duration(self.JWT_EXPIRATION)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return parse_duration(self.JWT_REFRESH_EXPIRATION)

    @field_validator("JWT_EXPIRATION", "JWT_REFRESH_EXPIRATION", mode="after")
    @classmethod
    def validate_expiration(cls, v: str, info) -> str:
        """过期时间必须是可解析的时长（如 1h、7d）且为正数"""
        if parse_duration(v) <= timedelta(0):
            raise ValueError(f"{info.field_name} 必须为正的时长")
        return v

    @model_validator(mode="after")
    def validate_security_settings(self):
        if "POSTGRES_MAX_CONNECTIONS" not in self.model_fields_set:
            self.POSTGRES_MAX_CONNECTIONS = 20 if self.DEBUG else 50
        if "DB_MAX_OVERFLOW" not in self.model_fields_set:
            self.DB_MAX_OVERFLOW = 10 if self.DEBUG else 20
        self.RATE_LIMIT_BACKEND = (self.RATE_LIMIT_BACKEND or "memory").lower()

        def must_set(name: str, value: str):
            if not value or str(value).strip() in {"", "change_me"}:
                raise ValueError(f"{name} 未配置或仍为默认值，请在 .env 中设置为安全值")

        must_set("JWT_SECRET", self.JWT_SECRET)
        must_set("JWT_REFRESH_SECRET", self.JWT_REFRESH_SECRET)

        # 访问令牌与刷新令牌必须使用不同密钥
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET 与 JWT_REFRESH_SECRET 不能相同")

        if self.is_production:
            self.DEBUG = False

        return self

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False  # 环境变量不区分大小写
        extra = "ignore"  # 忽略额外的环境变量
        populate_by_name = True


# 创建全局配置实例
settings = Settings()
