"""Channel / Thread Domain Model"""

from datetime import datetime

from pydantic import BaseModel, Field


class Channel(BaseModel):
    """频道 -- 名称唯一"""

    id: int
    name: str
    created_at: datetime


class Thread(BaseModel):
    """线程 -- 隶属于一个频道，不可删除"""

    id: int
    channel_id: int
    title: str
    created_by: int = Field(description="创建者用户 ID")
    created_at: datetime


class ThreadMeta(BaseModel):
    """线程的反规范化元信息，随消息/回复事件一起推送"""

    thread_id: int
    channel_id: int
    channel_name: str
    thread_title: str
