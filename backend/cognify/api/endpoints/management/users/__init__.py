"""
用户 API 端点模块
"""

from .users import router

__all__ = ["router"]
