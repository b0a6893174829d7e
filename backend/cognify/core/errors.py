"""
统一错误处理
AppError 与 FastAPI 异常处理器，所有错误响应使用相同的结构：
{"error": {"code", "message", "requestId", "details"?}}
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from cognify.core.config import settings
from cognify.db.errors import classify_db_error

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMIT_EXCEEDED",
    503: "SERVICE_UNAVAILABLE",
}


class AppError(Exception):
    """业务异常，携带 HTTP 状态码、错误码及可选的响应头"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        self.headers = headers


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or "unknown"


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "code": code,
        "message": message,
        "requestId": get_request_id(request),
    }
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(f"[{get_request_id(request)}] {request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return error_response(request, exc.status_code, exc.code, exc.message, exc.details, exc.headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = None if isinstance(exc.detail, str) else exc.detail
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(request, exc.status_code, code, message, details, getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"[{get_request_id(request)}] 请求参数校验失败: {exc.errors()}")
    return error_response(request, 400, "VALIDATION_ERROR", "Invalid request data", exc.errors())


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"[{get_request_id(request)}] 数据库异常: {exc}")
    if classify_db_error(exc) == "unavailable":
        return error_response(request, 503, "DATABASE_UNAVAILABLE", "Database not available")
    return error_response(request, 400, "DATABASE_ERROR", "Database operation failed")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[{get_request_id(request)}] 未处理异常 {request.method} {request.url.path}: {exc}")
    if settings.is_production:
        message = "An internal server error occurred"
    else:
        message = str(exc) or exc.__class__.__name__
    return error_response(request, 500, "INTERNAL_SERVER_ERROR", message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
