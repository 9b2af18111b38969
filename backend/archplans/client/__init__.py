"""
商城 API 的 Python 客户端
"""
from archplans.client.session import SessionError, SessionManager, SessionState

__all__ = ["SessionError", "SessionManager", "SessionState"]
