"""Event Payload 子类型

所有领域事件的结构化 payload 定义。消息/回复类事件都携带频道名与线程标题，
订阅方无需额外请求即可渲染。
"""

from pydantic import BaseModel, Field

from .chat import Channel, Thread
from .message import Message, Reply
from .task import Task


class ChannelCreatedPayload(BaseModel):
    """channel_created 事件 payload"""

    channel: Channel


class ThreadCreatedPayload(BaseModel):
    """thread_created 事件 payload"""

    channel_id: int
    thread: Thread


class ThreadScopedPayload(BaseModel):
    """消息/回复类事件共有的线程定位字段"""

    thread_id: int
    channel_id: int
    channel_name: str
    thread_title: str


class MessagePayload(ThreadScopedPayload):
    """message_created / message_updated 事件 payload"""

    message: Message


class MessageDeletedPayload(ThreadScopedPayload):
    """message_deleted 事件 payload"""

    message_id: int


class ReplyPayload(ThreadScopedPayload):
    """reply_created / reply_updated 事件 payload"""

    message_id: int = Field(description="父消息 ID")
    reply: Reply


class ReplyDeletedPayload(ThreadScopedPayload):
    """reply_deleted 事件 payload"""

    message_id: int
    reply_id: int


class TaskEventPayload(BaseModel):
    """task_created / task_updated 事件 payload"""

    task: Task


class TaskDeletedPayload(BaseModel):
    """task_deleted 事件 payload -- 足以让客户端无需回查即可对账"""

    task_id: int
    message_id: int
    channel_id: int
    thread_id: int
