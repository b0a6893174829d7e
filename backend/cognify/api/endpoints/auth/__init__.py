"""
认证 API 端点模块
"""

from .auth import router

__all__ = ["router"]
