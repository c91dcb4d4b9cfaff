"""Task Domain Model

每个任务恰好来源于一条消息（message_id 唯一）。
updated_at 同时是 done 任务可见窗口的计时起点。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import TaskStatus


class Task(BaseModel):
    """看板任务"""

    id: int
    message_id: int = Field(description="来源消息 ID，1:1")
    channel_id: int
    thread_id: int
    created_by: int
    title: str
    note: str = Field(default="", description="备注，可包含 checklist 行")
    status: TaskStatus = Field(default=TaskStatus.OPEN)
    created_at: datetime
    updated_at: datetime
    created_by_name: str = Field(default="", description="创建者显示名称")
    channel_name: str = Field(default="")
    thread_title: str = Field(default="")
