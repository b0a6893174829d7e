"""
认证 API 端点
注册、登录、刷新令牌、登出、令牌校验、找回密码
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request, Response

from cognify.core.config import settings
from cognify.core.deps import get_auth_service
from cognify.schemas import (
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    TokenResponse,
    VerifyResponse,
)
from cognify.services.auth import AuthResult, AuthService
from cognify.utils.rate_limit import rate_limit

router = APIRouter()


def _set_refresh_cookie(response: Response, value: str, max_age: int) -> None:
    response.set_cookie(
        key=settings.REFRESH_TOKEN_COOKIE_NAME,
        value=value,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        domain=settings.COOKIE_DOMAIN,
        path="/",
    )


def _render(result: AuthResult, response: Response) -> Dict[str, Any]:
    """把认证结果写入响应：状态码、Cookie 与 JSON 内容"""
    response.status_code = result.status_code
    if result.cookie is not None:
        _set_refresh_cookie(response, result.cookie.value, result.cookie.max_age)
    return result.payload


@router.post(
    "/signup",
    dependencies=[Depends(rate_limit("auth"))],
    responses={200: {"model": TokenResponse}, 409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def signup(
    payload: SignupRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """注册新用户，默认角色为 STUDENT"""
    result = await service.signup(payload.name, payload.username, payload.email, payload.password)
    return _render(result, response)


@router.post(
    "/login",
    dependencies=[Depends(rate_limit("auth"))],
    responses={200: {"model": TokenResponse}, 401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def login(
    payload: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """
    用户名或邮箱登录
    响应体返回访问令牌，刷新令牌写入 HttpOnly Cookie
    """
    result = await service.login(payload.handle, payload.password)
    return _render(result, response)


@router.post(
    "/refresh",
    dependencies=[Depends(rate_limit("strict"))],
    responses={200: {"model": TokenResponse}, 401: {"model": ErrorResponse}},
)
async def refresh(
    request: Request,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """使用 Cookie 中的刷新令牌换取新的访问令牌，并轮换刷新令牌"""
    token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE_NAME)
    if not token:
        response.status_code = 401
        return {"error": "No refresh token found"}

    result = await service.refresh_token(token)
    return _render(result, response)


@router.post(
    "/logout",
    dependencies=[Depends(rate_limit("strict"))],
    responses={200: {"model": MessageResponse}, 401: {"model": ErrorResponse}},
)
async def logout(
    response: Response,
    cookie: Optional[str] = Header(None),
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    result = await service.logout(cookie)
    return _render(result, response)


@router.get("/verify", responses={200: {"model": VerifyResponse}, 401: {"model": ErrorResponse}})
async def verify(
    response: Response,
    authorization: Optional[str] = Header(None),
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """校验 Bearer 访问令牌，返回令牌中的用户信息"""
    result = await service.verify(authorization)
    return _render(result, response)


@router.post(
    "/forgot-password",
    dependencies=[Depends(rate_limit("auth"))],
    responses={200: {"model": MessageResponse}, 404: {"model": ErrorResponse}},
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    result = await service.forgot_password(payload.email)
    return _render(result, response)
