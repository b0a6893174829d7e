"""
认证服务
注册、登录、刷新令牌、登出、令牌校验、找回密码

每个流程返回 AuthSuccess 或 AuthFailure，由接口层转换为 HTTP 响应；
内部异常一律在此捕获，不向传输层抛出
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cognify.core.auth_context import extract_bearer_token
from cognify.core.config import Settings, settings as default_settings
from cognify.db.errors import classify_db_error, conflicting_field
from cognify.models import User, UserRole
from cognify.models.core.user import ROLE_STUDENT
from cognify.services.refresh_tokens import RefreshTokenStore
from cognify.utils.security import hash_password_async, verify_password_async
from cognify.utils.tokens import TokenCodec, TokenError

UNAUTHORIZED = "Unauthorized"
INVALID_CREDENTIALS = "Invalid credentials"
DATABASE_NOT_AVAILABLE = "Database not available"

_CONFLICT_MESSAGES = {
    "email": "Email already registered",
    "username": "Username already taken",
}


@dataclass(frozen=True)
class RefreshCookie:
    """刷新令牌 Cookie 指令；max_age 为 0 表示清除"""
    value: str
    max_age: int


@dataclass(frozen=True)
class AuthSuccess:
    payload: Dict[str, Any]
    status_code: int = 200
    cookie: Optional[RefreshCookie] = None

    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class AuthFailure:
    status_code: int
    error: str
    cookie: Optional[RefreshCookie] = field(default=None, init=False)

    ok: ClassVar[bool] = False

    @property
    def payload(self) -> Dict[str, Any]:
        return {"error": self.error}


AuthResult = Union[AuthSuccess, AuthFailure]


def parse_cookie_header(cookie_header: Optional[str], name: str) -> Optional[str]:
    """从原始 Cookie 头中取出指定 Cookie 的值"""
    for part in (cookie_header or "").split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key == name:
            return value or None
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite 返回不带时区的时间，按 UTC 处理
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuthService:
    """认证流程编排：组合密码哈希、令牌编解码与刷新令牌存储"""

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[Settings] = None,
        *,
        codec: Optional[TokenCodec] = None,
        store: Optional[RefreshTokenStore] = None,
    ) -> None:
        self.db = db
        self.config = config or default_settings
        self.codec = codec or TokenCodec(self.config.ALGORITHM)
        self.store = store or RefreshTokenStore(db)

    # ==================== 内部工具 ====================

    def _issue_tokens(self, identity: Dict[str, Any]) -> Tuple[str, str]:
        access_token = self.codec.sign(identity, self.config.JWT_SECRET, self.config.access_token_ttl)
        refresh_token = self.codec.sign(identity, self.config.JWT_REFRESH_SECRET, self.config.refresh_token_ttl)
        return access_token, refresh_token

    def _refresh_cookie(self, token: str) -> RefreshCookie:
        return RefreshCookie(value=token, max_age=int(self.config.refresh_token_ttl.total_seconds()))

    def _refresh_expires_at(self) -> datetime:
        return _utcnow() + self.config.refresh_token_ttl

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.warning(f"数据库回滚失败: {e}")

    async def _load_user(self, *conditions) -> Optional[User]:
        query = select(User).options(selectinload(User.roles)).where(*conditions).limit(1)
        result = await self.db.execute(query)
        return result.scalars().first()

    @staticmethod
    def _identity(user: User) -> Dict[str, Any]:
        return {"id": user.id, "username": user.username, "roles": user.role_names}

    # ==================== 认证流程 ====================

    async def signup(self, name: str, username: str, email: str, password: str) -> AuthResult:
        """注册：创建用户并赋予 STUDENT 角色，返回访问令牌"""
        try:
            hashed = await hash_password_async(password)
            user = User(
                name=name,
                username=username,
                email=email,
                password=hashed,
                roles=[UserRole(role=ROLE_STUDENT)],
            )
            self.db.add(user)
            await self.db.commit()
        except Exception as exc:
            await self._rollback()
            logger.error(f"注册失败: {exc}")
            kind = classify_db_error(exc)
            if kind == "unavailable":
                return AuthFailure(503, DATABASE_NOT_AVAILABLE)
            if kind == "conflict":
                message = _CONFLICT_MESSAGES.get(conflicting_field(exc), "User already exists")
                return AuthFailure(409, message)
            return AuthFailure(500, "Failed to create user")

        token = self.codec.sign(
            {"id": user.id, "username": username, "roles": [ROLE_STUDENT]},
            self.config.JWT_SECRET,
            self.config.access_token_ttl,
        )
        logger.info(f"新用户注册成功: {username}")
        return AuthSuccess({"token": token})

    async def login(self, handle: str, password: str) -> AuthResult:
        """登录：用户名或邮箱 + 密码，签发访问令牌与刷新令牌"""
        try:
            user = await self._load_user(or_(User.username == handle, User.email == handle))
            if user is None:
                return AuthFailure(401, INVALID_CREDENTIALS)

            if not await verify_password_async(password, user.password):
                return AuthFailure(401, INVALID_CREDENTIALS)

            access_token, refresh_token = self._issue_tokens(self._identity(user))
            await self.store.create(refresh_token, user.id, self._refresh_expires_at())
        except Exception as exc:
            await self._rollback()
            logger.error(f"登录失败: {exc}")
            if classify_db_error(exc) == "unavailable":
                return AuthFailure(503, DATABASE_NOT_AVAILABLE)
            return AuthFailure(500, "Login failed")

        logger.info(f"用户登录成功: {user.username}")
        return AuthSuccess({"token": access_token}, cookie=self._refresh_cookie(refresh_token))

    async def refresh_token(self, token: str) -> AuthResult:
        """
        使用刷新令牌换取新的访问令牌

        1. 用刷新密钥校验签名与过期时间
        2. 查找持久化记录
        3. 检查记录中的过期时间，过期则删除记录
        4. 查找用户及其角色
        5. 签发新令牌并原子轮换刷新令牌
        任一步骤异常均返回 401
        """
        try:
            claims = self.codec.verify(token, self.config.JWT_REFRESH_SECRET)

            record = await self.store.find_by_token(token)
            if record is None:
                return AuthFailure(401, UNAUTHORIZED)

            if _utcnow() > _as_utc(record.expires_at):
                await self.store.delete_by_token(token)
                logger.info(f"刷新令牌已过期并删除 user_id={record.user_id}")
                return AuthFailure(401, "Refresh token expired")

            user = await self._load_user(User.id == claims.id)
            if user is None:
                return AuthFailure(401, UNAUTHORIZED)

            access_token, new_refresh_token = self._issue_tokens(self._identity(user))
            rotated = await self.store.rotate(token, new_refresh_token, user.id, self._refresh_expires_at())
            if not rotated:
                return AuthFailure(401, UNAUTHORIZED)
        except TokenError as exc:
            logger.info(f"刷新令牌校验失败: {exc}")
            return AuthFailure(401, UNAUTHORIZED)
        except Exception as exc:
            await self._rollback()
            logger.error(f"刷新令牌失败: {exc}")
            return AuthFailure(401, UNAUTHORIZED)

        return AuthSuccess({"token": access_token}, cookie=self._refresh_cookie(new_refresh_token))

    async def logout(self, cookie_header: Optional[str]) -> AuthResult:
        """登出：删除 Cookie 中的刷新令牌记录并清除 Cookie"""
        token = parse_cookie_header(cookie_header, self.config.REFRESH_TOKEN_COOKIE_NAME)
        if not token:
            return AuthFailure(401, UNAUTHORIZED)

        try:
            removed = await self.store.delete_by_token(token)
        except Exception as exc:
            await self._rollback()
            logger.error(f"登出失败: {exc}")
            return AuthFailure(401, UNAUTHORIZED)

        logger.debug(f"登出：删除刷新令牌 {removed} 条")
        return AuthSuccess({"message": "Logged out"}, cookie=RefreshCookie(value="", max_age=0))

    async def verify(self, authorization: Optional[str]) -> AuthResult:
        """校验 Authorization 头中的访问令牌"""
        token = extract_bearer_token(authorization)
        if token is None:
            return AuthFailure(401, UNAUTHORIZED)

        try:
            claims = self.codec.verify(token, self.config.JWT_SECRET)
        except TokenError as exc:
            logger.info(f"访问令牌校验失败: {exc}")
            return AuthFailure(401, str(exc))

        return AuthSuccess({"user": claims.model_dump(exclude_none=True)})

    async def forgot_password(self, email: str) -> AuthResult:
        try:
            result = await self.db.execute(select(User).where(User.email == email).limit(1))
            user = result.scalars().first()
        except Exception as exc:
            await self._rollback()
            logger.error(f"找回密码查询失败: {exc}")
            if classify_db_error(exc) == "unavailable":
                return AuthFailure(503, DATABASE_NOT_AVAILABLE)
            return AuthFailure(500, "Failed to process request")

        if user is None:
            return AuthFailure(404, "User not found")

        # TODO: 接入邮件服务后在此发送重置链接
        logger.info(f"密码重置请求 user_id={user.id}")
        return AuthSuccess({"message": "Email sent"})
