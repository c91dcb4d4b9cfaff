"""apps/gateway 测试配置 -- 绕过 lifespan 手动注入 Store、SSEHub 与时钟"""

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
async def test_app(store_group, clock):
    """创建测试用 FastAPI app（不触发 lifespan，不写默认频道）"""
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
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def signup(client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    """注册用户，返回响应体与可直接使用的 headers"""

    async def _signup(name: str = "alice") -> dict[str, Any]:
        resp = await client.post(
            "/api/auth/signup",
            json={"name": name, "email": f"{name}@example.com", "password": "secret"},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        data["headers"] = {"X-Session-Id": data["session_id"]}
        return data

    return _signup


@pytest_asyncio.fixture
async def alice(signup) -> dict[str, Any]:
    return await signup("alice")


@pytest_asyncio.fixture
async def workspace(client: AsyncClient, alice) -> dict[str, Any]:
    """alice 创建的 eng 频道及其 main 线程"""
    resp = await client.post("/api/channels", json={"name": "eng"}, headers=alice["headers"])
    assert resp.status_code == 201, resp.text
    channel = resp.json()
    threads = await client.get(f"/api/channels/{channel['id']}/threads", headers=alice["headers"])
    return {"channel_id": channel["id"], "thread_id": threads.json()[0]["id"]}


@pytest_asyncio.fixture
async def hub_events(test_app, workspace) -> AsyncGenerator[Callable[[], Awaitable[list]], None]:
    """订阅广播器，返回取出已投递事件的函数（在 workspace 创建之后订阅）"""
    hub: SSEHub = test_app.state.sse_hub
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
