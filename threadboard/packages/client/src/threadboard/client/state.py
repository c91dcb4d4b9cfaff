"""ViewState -- 单个客户端的本地视图状态

只保存当前聚焦的频道/线程/消息对应的数据，外加任意线程的未读计数与活动元信息。
"""

from enum import StrEnum

from pydantic import BaseModel, Field
from threadboard.core.models import Channel, Message, Reply, Task, Thread


class TaskScope(StrEnum):
    """看板任务的拉取范围"""

    ALL = "all"
    CHANNEL = "channel"
    THREAD = "thread"


class ThreadActivity(BaseModel):
    """未聚焦线程的最近活动"""

    thread_id: int
    channel_id: int
    channel_name: str
    thread_title: str
    seq: int = Field(description="活动序号，越大越新")


class ActivityEntry(BaseModel):
    """活动面板的一项 -- 有未读的线程"""

    thread_id: int
    count: int
    channel_id: int
    channel_name: str
    thread_title: str


class ViewState(BaseModel):
    """客户端视图状态"""

    channels: list[Channel] = Field(default_factory=list)
    threads: list[Thread] = Field(default_factory=list, description="聚焦频道的线程，最新在前")
    messages: list[Message] = Field(default_factory=list, description="聚焦线程的消息")
    replies: list[Reply] = Field(default_factory=list, description="聚焦消息的回复")
    tasks: list[Task] = Field(default_factory=list, description="当前看板范围内的任务")

    selected_channel_id: int | None = None
    selected_thread_id: int | None = None
    selected_message_id: int | None = None
    task_scope: TaskScope = TaskScope.ALL
    task_filter_channel_id: int | None = Field(default=None, description="看板过滤的频道")
    task_filter_thread_id: int | None = Field(default=None, description="看板过滤的线程")

    unread: dict[int, int] = Field(default_factory=dict, description="thread_id -> 未读数")
    activity: dict[int, ThreadActivity] = Field(default_factory=dict)
