"""Message / Reply / ThreadRead Domain Model

读取时总是带上作者名称（user_name），消息额外带 reply_count。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Message(BaseModel):
    """线程内的一条消息"""

    id: int
    thread_id: int
    user_id: int
    content: str
    created_at: datetime
    user_name: str = Field(description="作者显示名称")
    reply_count: int = Field(default=0, description="回复数")


class Reply(BaseModel):
    """消息的回复（不可再嵌套）"""

    id: int
    message_id: int
    user_id: int
    content: str
    created_at: datetime
    user_name: str


class ThreadRead(BaseModel):
    """(user, thread) 已读游标"""

    user_id: int
    thread_id: int
    last_read_message_id: int = Field(default=0, ge=0)
    updated_at: datetime
