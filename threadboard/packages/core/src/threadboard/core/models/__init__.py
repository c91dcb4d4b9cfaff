"""Threadboard Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .chat import Channel, Thread, ThreadMeta
from .enums import CONNECTED_FRAME_TYPE, EventType, TaskStatus
from .event import Event
from .message import Message, Reply, ThreadRead
from .payloads import (
    ChannelCreatedPayload,
    MessageDeletedPayload,
    MessagePayload,
    ReplyDeletedPayload,
    ReplyPayload,
    TaskDeletedPayload,
    TaskEventPayload,
    ThreadCreatedPayload,
)
from .task import Task
from .user import AuthenticatedUser, Session, User

__all__ = [
    # 枚举
    "TaskStatus",
    "EventType",
    "CONNECTED_FRAME_TYPE",
    # 实体
    "User",
    "Session",
    "AuthenticatedUser",
    "Channel",
    "Thread",
    "ThreadMeta",
    "Message",
    "Reply",
    "ThreadRead",
    "Task",
    # Event
    "Event",
    # Payloads
    "ChannelCreatedPayload",
    "ThreadCreatedPayload",
    "MessagePayload",
    "MessageDeletedPayload",
    "ReplyPayload",
    "ReplyDeletedPayload",
    "TaskEventPayload",
    "TaskDeletedPayload",
]
