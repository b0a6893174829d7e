"""
请求身份派生
从 Authorization 头解析 Bearer 令牌，得到只读的 {user, has_role} 身份对象
任何异常情况都降级为匿名身份，不抛出异常
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from cognify.utils.tokens import TokenClaims, TokenCodec, TokenError

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthContext:
    user: Optional[TokenClaims] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def has_role(self, *roles: str) -> bool:
        """拥有任一角色即返回 True；匿名用户或未传角色时始终为 False"""
        if self.user is None or not roles:
            return False
        return any(role in roles for role in self.user.roles)


ANONYMOUS = AuthContext()


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def derive_auth_context(authorization: Optional[str], codec: TokenCodec, secret: str) -> AuthContext:
    token = extract_bearer_token(authorization)
    if token is None:
        return ANONYMOUS

    try:
        claims = codec.verify(token, secret)
    except TokenError as e:
        logger.debug(f"访问令牌无效，按匿名处理: {e}")
        return ANONYMOUS
    except Exception as e:
        logger.warning(f"访问令牌解析异常，按匿名处理: {e}")
        return ANONYMOUS

    logger.debug(f"用户 {claims.id} 已认证")
    return AuthContext(user=claims)
