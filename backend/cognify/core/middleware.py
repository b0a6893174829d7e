"""
HTTP 中间件：请求 ID、请求日志、安全响应头
"""

import time
import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cognify.utils.rate_limit import client_ip


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        response.headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=()")
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = rid
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """记录每个请求的方法、路径、状态码与耗时；4xx 记为 WARNING，5xx 记为 ERROR"""

    async def dispatch(self, request: Request, call_next):
        rid = getattr(request.state, "request_id", "unknown")
        logger.debug(
            f"[{rid}] {request.method} {request.url.path} "
            f"ip={client_ip(request)} ua={request.headers.get('user-agent', '-')}"
        )

        start = time.perf_counter()
        status_code = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            dur_ms = int((time.perf_counter() - start) * 1000)
            message = f"[{rid}] {request.method} {request.url.path} - {status_code} ({dur_ms}ms)"
            if status_code >= 500:
                logger.error(message)
            elif status_code >= 400:
                logger.warning(message)
            else:
                logger.info(message)
