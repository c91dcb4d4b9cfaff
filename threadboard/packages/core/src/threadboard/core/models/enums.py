"""枚举定义

包含 TaskStatus（open/doing/done）与推送给客户端的 EventType。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """任务看板状态 -- 任意状态之间均可流转"""

    OPEN = "open"
    DOING = "doing"
    DONE = "done"


class EventType(StrEnum):
    """领域事件类型 -- SSE 帧的 type 字段"""

    CHANNEL_CREATED = "channel_created"
    THREAD_CREATED = "thread_created"
    MESSAGE_CREATED = "message_created"
    MESSAGE_UPDATED = "message_updated"
    MESSAGE_DELETED = "message_deleted"
    REPLY_CREATED = "reply_created"
    REPLY_UPDATED = "reply_updated"
    REPLY_DELETED = "reply_deleted"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"


# 连接确认帧类型（不属于领域事件，仅由事件流端点发送）
CONNECTED_FRAME_TYPE = "connected"
