"""SSE 事件流路由

GET /api/events: 推送所有领域事件（过滤由客户端完成）。
连接建立后先发送 {"type": "connected"}，空闲期间定时发送 keep-alive 注释。
"""

import asyncio
import json
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse
from threadboard.core.config import ChatConfig
from threadboard.core.models import CONNECTED_FRAME_TYPE, AuthenticatedUser

from ..deps import get_config, get_current_user, get_sse_hub
from ..services.sse_hub import SSEHub

router = APIRouter()


async def event_stream(
    sse_hub: SSEHub,
    heartbeat_interval: float,
) -> AsyncGenerator[dict, None]:
    """事件流生成器

    客户端断开时生成器被取消，finally 中注销订阅。
    订阅因队列积压被广播器移除后结束流，由客户端重连并重新拉取快照。
    """
    subscription = await sse_hub.subscribe()
    try:
        yield {"data": json.dumps({"type": CONNECTED_FRAME_TYPE})}
        while True:
            try:
                data = await asyncio.wait_for(subscription.get(), timeout=heartbeat_interval)
                yield {"data": data}
            except TimeoutError:
                if subscription.closed:
                    return
                # 心跳保活
                yield {"comment": "keep-alive"}
    finally:
        await sse_hub.unsubscribe(subscription)


@router.get("/api/events")
async def stream_events(
    user: AuthenticatedUser = Depends(get_current_user),
    sse_hub: SSEHub = Depends(get_sse_hub),
    config: ChatConfig = Depends(get_config),
):
    """SSE 事件流端点（需鉴权，EventSource 客户端可用 ?sid= 传递会话）"""
    return EventSourceResponse(event_stream(sse_hub, config.sse_heartbeat_interval))
