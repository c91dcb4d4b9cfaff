"""SSEHub -- 内存中事件广播器

每个订阅者持有一个有界 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
事件只推送给当前在线的订阅者，不保留历史、不支持回放。
"""

import asyncio
import json
from datetime import datetime

import structlog
from pydantic import BaseModel
from threadboard.core.models import Event, EventType
from ulid import ULID

log = structlog.get_logger()


class Subscription:
    """单个事件流连接的订阅句柄"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        self.subscription_id = str(ULID())
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, data: str) -> bool:
        """投递一帧已序列化的数据

        Returns:
            False 表示订阅已关闭或队列已满，调用方应移除该订阅
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(data)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> str:
        """等待下一帧数据"""
        return await self._queue.get()

    def close(self) -> None:
        self._closed = True


class SSEHub:
    """SSE 事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式

    过滤完全在客户端进行：每个事件都会推送给所有订阅者。
    """

    def __init__(self, queue_maxsize: int = 100) -> None:
        self._subscribers: set[Subscription] = set()
        self._queue_maxsize = queue_maxsize

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> Subscription:
        """注册一个新订阅

        Returns:
            Subscription 实例，新事件会被推送到其队列
        """
        subscription = Subscription(self._queue_maxsize)
        self._subscribers.add(subscription)
        log.debug("subscriber_added", subscription_id=subscription.subscription_id)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        """取消订阅（重复调用无副作用）"""
        subscription.close()
        self._subscribers.discard(subscription)

    async def broadcast(self, event: Event) -> int:
        """向所有订阅者广播事件

        事件只序列化一次；投递失败的订阅者被移除，不向调用方抛出异常。

        Args:
            event: 要广播的事件

        Returns:
            成功投递的订阅者数量
        """
        data = json.dumps(event.to_wire(), ensure_ascii=False)

        delivered = 0
        dead: list[Subscription] = []
        for subscription in list(self._subscribers):
            if subscription.send(data):
                delivered += 1
            else:
                dead.append(subscription)

        # 清理已满或已关闭的订阅
        for subscription in dead:
            subscription.close()
            self._subscribers.discard(subscription)
            log.warning(
                "subscriber_dropped",
                subscription_id=subscription.subscription_id,
                event_type=event.type.value,
            )
        return delivered

    async def publish(
        self,
        event_type: EventType,
        payload: BaseModel,
        ts: datetime,
    ) -> Event:
        """构造领域事件并广播"""
        event = Event(
            event_id=str(ULID()),
            type=event_type,
            ts=ts,
            payload=payload.model_dump(mode="json"),
        )
        await self.broadcast(event)
        return event
