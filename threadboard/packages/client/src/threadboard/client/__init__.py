"""Threadboard Client -- 无界面的客户端同步引擎

packages/client 的公开接口导出。
"""

from .api import ChatApi, HttpChatApi, parse_sse_line
from .exceptions import ApiError, ClientError
from .state import ActivityEntry, TaskScope, ThreadActivity, ViewState
from .sync import SyncEngine

__all__ = [
    "ChatApi",
    "HttpChatApi",
    "parse_sse_line",
    "ApiError",
    "ClientError",
    "ActivityEntry",
    "TaskScope",
    "ThreadActivity",
    "ViewState",
    "SyncEngine",
]
