"""
用户 API 端点
当前用户信息，以及管理员可见的用户列表
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cognify.core.auth_context import AuthContext
from cognify.core.deps import get_db, require_roles, require_user
from cognify.core.errors import AppError
from cognify.models import User
from cognify.models.core.user import ROLE_ADMIN
from cognify.schemas import UserListResponse, UserResponse

router = APIRouter()


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        roles=user.role_names,
        created_at=user.created_at,
    )


@router.get("/me", response_model=UserResponse)
async def read_current_user(
    auth: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """获取当前登录用户的资料及角色"""
    result = await db.execute(
        select(User).options(selectinload(User.roles)).where(User.id == auth.user.id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise AppError("User not found", status_code=404, code="NOT_FOUND")
    return _to_response(user)


@router.get("", response_model=UserListResponse)
async def list_users(
    skip: int = Query(0, ge=0, description="跳过记录数"),
    limit: int = Query(20, ge=1, le=100, description="每页记录数"),
    search: Optional[str] = Query(None, description="搜索关键词（用户名、邮箱、姓名）"),
    auth: AuthContext = Depends(require_roles(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """
    获取用户列表（仅管理员）
    支持分页和关键词搜索
    """
    query = select(User).options(selectinload(User.roles))
    count_query = select(func.count()).select_from(User)

    if search:
        pattern = f"%{search}%"
        condition = or_(User.username.ilike(pattern), User.email.ilike(pattern), User.name.ilike(pattern))
        query = query.where(condition)
        count_query = count_query.where(condition)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.order_by(User.created_at.desc(), User.username).offset(skip).limit(limit))
    users = result.scalars().all()

    return UserListResponse(
        users=[_to_response(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
        has_more=skip + len(users) < total,
    )
