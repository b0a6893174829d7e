"""
数据库异常分类
把驱动/ORM 异常归为：连接不可用、唯一约束冲突、其他错误
"""

from typing import Literal, Optional

from sqlalchemy.exc import DBAPIError, DisconnectionError, IntegrityError, InterfaceError, OperationalError

DbErrorKind = Literal["unavailable", "conflict", "other"]

_CONNECTION_HINTS = (
    "connection refused",
    "could not connect",
    "connection is closed",
    "connection was closed",
    "database not connected",
    "unable to open database",
    "name or service not known",
)


def classify_db_error(exc: BaseException) -> DbErrorKind:
    if isinstance(exc, IntegrityError):
        return "conflict"
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError, ConnectionError, TimeoutError)):
        return "unavailable"
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return "unavailable"
    if isinstance(exc, OSError):
        return "unavailable"
    message = str(exc).lower()
    if any(hint in message for hint in _CONNECTION_HINTS):
        return "unavailable"
    return "other"


def conflicting_field(exc: BaseException, fields: tuple = ("username", "email")) -> Optional[str]:
    """
    从唯一约束异常中推断冲突字段

    PostgreSQL: Key (email)=(...) already exists / users_email_key
    SQLite:     UNIQUE constraint failed: users.email
    """
    message = str(getattr(exc, "orig", None) or exc).lower()
    for field in fields:
        if (
            f"({field})" in message
            or f".{field}" in message
            or f"_{field}_key" in message
        ):
            return field
    return None
