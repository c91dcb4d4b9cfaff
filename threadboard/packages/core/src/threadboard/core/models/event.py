"""Event Domain Model -- 推送给所有在线客户端的领域事件

事件不落盘、不可回放：客户端连接之后才发生的事件才会收到。
event_id 使用 ULID 格式，时间有序。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType


class Event(BaseModel):
    """领域事件

    wire 格式为扁平 JSON：{"type", "event_id", "ts", **payload}。
    """

    event_id: str = Field(description="唯一标识，ULID 格式")
    type: EventType = Field(description="事件类型")
    ts: datetime = Field(description="事件时间戳")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")

    def to_wire(self) -> dict[str, Any]:
        """转换为 SSE data 帧内容"""
        return {
            "type": self.type.value,
            "event_id": self.event_id,
            "ts": self.ts.isoformat(),
            **self.payload,
        }
