"""
用户与角色模型定义 - 使用 sys_ 前缀
一个用户可拥有多个角色（STUDENT、INSTRUCTOR、ADMIN）
"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from cognify.db.database import Base

ROLE_STUDENT = "STUDENT"
ROLE_INSTRUCTOR = "INSTRUCTOR"
ROLE_ADMIN = "ADMIN"
ROLES = (ROLE_STUDENT, ROLE_INSTRUCTOR, ROLE_ADMIN)


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """用户表模型 - sys_users"""
    __tablename__ = "sys_users"

    id = Column(String(36), primary_key=True, default=_new_id, comment="用户ID")

    # 登录凭证（用户名或邮箱均可作为登录标识）
    username = Column(String(50), unique=True, nullable=False, comment="用户名")
    email = Column(String(255), unique=True, nullable=False, comment="邮箱")
    password = Column(String(255), nullable=False, comment="bcrypt 密码哈希")

    # 基本信息
    name = Column(String(100), nullable=False, comment="显示名称")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False, comment="更新时间")

    roles = relationship("UserRole", back_populates="user", lazy="selectin", cascade="all, delete-orphan")

    @property
    def role_names(self) -> list[str]:
        return [r.role for r in self.roles]

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"


class UserRole(Base):
    """用户角色表 - sys_user_roles"""
    __tablename__ = "sys_user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_sys_user_roles_user_role"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("sys_users.id", ondelete="CASCADE"), index=True, nullable=False, comment="用户ID")
    role = Column(String(20), nullable=False, comment="角色: STUDENT, INSTRUCTOR, ADMIN")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间")

    user = relationship("User", back_populates="roles")

    def __repr__(self):
        return f"<UserRole(user_id={self.user_id}, role='{self.role}')>"
