"""集成测试共享 fixture"""

import asyncio
import json
import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from threadboard.core.config import ChatConfig
from threadboard.gateway.services.sse_hub import SSEHub


@pytest_asyncio.fixture
async def integration_app(store_group, clock):
    """集成测试用 FastAPI app（手动初始化，绕过 lifespan）"""
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from threadboard.gateway.main import create_app

    app = create_app()
    app.state.store_group = store_group
    app.state.sse_hub = SSEHub()
    app.state.config = ChatConfig(seed_default_channel=False)
    app.state.clock = clock

    yield app

    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def hub_events(integration_app) -> AsyncGenerator[Callable[[], Awaitable[list]], None]:
    """直接订阅广播器（模拟一个在线的事件流连接），返回取出已投递事件的函数"""
    hub: SSEHub = integration_app.state.sse_hub
    subscription = await hub.subscribe()

    async def drain() -> list[dict[str, Any]]:
        frames: list[dict[str, Any]] = []
        while True:
            try:
                data = await asyncio.wait_for(subscription.get(), timeout=0.05)
            except TimeoutError:
                return frames
            frames.append(json.loads(data))

    yield drain

    await hub.unsubscribe(subscription)
