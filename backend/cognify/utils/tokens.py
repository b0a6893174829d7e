"""
JWT 令牌编解码
访问令牌与刷新令牌共用一套签名/校验逻辑，密钥与有效期由调用方传入
"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError

Duration = Union[timedelta, int, float, str]

_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w|y)?\s*$", re.IGNORECASE)
_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "y": 365.25 * 24 * 60 * 60,
}


def parse_duration(value: Duration) -> timedelta:
    """
    解析时长配置

    支持 timedelta、秒数，以及 "500ms" / "30s" / "15m" / "1h" / "7d" / "2w" 形式的字符串，
    不带单位的字符串按秒计算
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"无法解析的时长: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=float(amount) * _UNIT_SECONDS[(unit or "s").lower()])


class TokenError(Exception):
    """令牌校验失败"""


class InvalidToken(TokenError):
    """签名不匹配、格式错误或载荷结构不合法"""


class TokenExpired(TokenError):
    """令牌已过期"""


class TokenClaims(BaseModel):
    """令牌载荷：用户ID、用户名与角色列表"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    username: str
    roles: List[str]
    iat: Optional[int] = None
    exp: Optional[int] = None
    jti: Optional[str] = None

    def identity(self) -> Dict[str, Any]:
        """签发新令牌时携带的身份字段"""
        return {"id": self.id, "username": self.username, "roles": list(self.roles)}


class TokenCodec:
    """HS256 JWT 签名与校验"""

    def __init__(self, algorithm: str = "HS256") -> None:
        self.algorithm = algorithm

    def sign(
        self,
        claims: Union[TokenClaims, Mapping[str, Any]],
        secret: str,
        expires_in: Duration,
    ) -> str:
        if isinstance(claims, TokenClaims):
            to_encode = claims.identity()
        else:
            to_encode = dict(claims)

        now = datetime.now(timezone.utc)
        expire = now + parse_duration(expires_in)
        # jti 保证同一秒内为同一用户签发的令牌也互不相同
        to_encode.update(
            {
                "iat": int(now.timestamp()),
                "exp": int(expire.timestamp()),
                "jti": uuid.uuid4().hex,
            }
        )
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def verify(self, token: str, secret: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired(str(exc) or "Token expired") from exc
        except JWTError as exc:
            raise InvalidToken(str(exc) or "Invalid token") from exc

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise InvalidToken("Invalid token claims") from exc
