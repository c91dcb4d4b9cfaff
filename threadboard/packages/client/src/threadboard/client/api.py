"""ChatApi -- SyncEngine 依赖的拉取/写入接口与 httpx 实现

事件流按 SSE 文本协议逐行解析，只处理 `data:` 行；
无法解析为 JSON 对象的帧直接跳过。
"""

import json
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx
import structlog
from threadboard.core.models import Channel, Message, Reply, Task, Thread

from .exceptions import ApiError

log = structlog.get_logger()

SESSION_HEADER = "X-Session-Id"


class ChatApi(Protocol):
    """SyncEngine 所需的服务端接口"""

    async def list_channels(self) -> list[Channel]: ...

    async def list_threads(self, channel_id: int) -> list[Thread]: ...

    async def list_messages(self, thread_id: int) -> list[Message]: ...

    async def list_replies(self, message_id: int) -> list[Reply]: ...

    async def list_tasks(
        self,
        status: str | None = None,
        channel_id: int | None = None,
        thread_id: int | None = None,
    ) -> list[Task]: ...

    async def mark_thread_read(self, thread_id: int, last_read_message_id: int) -> None: ...

    def stream_events(self) -> AsyncIterator[dict[str, Any]]: ...


def parse_sse_line(line: str) -> dict[str, Any] | None:
    """解析单行 SSE 文本，返回 data 帧的 JSON 对象

    注释行（keep-alive）、空行、非 JSON 或非对象的 data 均返回 None。
    """
    if not line.startswith("data:"):
        return None
    raw = line[len("data:") :].strip()
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        log.debug("malformed_frame_skipped", raw=raw[:200])
        return None
    if not isinstance(frame, dict):
        return None
    return frame


class HttpChatApi:
    """基于 httpx.AsyncClient 的 ChatApi 实现"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session_id: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 10.0,
    ) -> None:
        """
        Args:
            base_url: gateway 地址
            session_id: 已有会话 token，可在 login/signup 后自动设置
            client: 外部传入的 AsyncClient（测试时可传入 ASGITransport 客户端）
            timeout_s: 普通请求超时（秒），事件流不设超时
        """
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)
        self._owns_client = client is None
        self.session_id = session_id

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- auth ----

    async def signup(self, name: str, email: str, password: str) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/api/auth/signup",
            json={"name": name, "email": email, "password": password},
        )
        self.session_id = data["session_id"]
        return data

    async def login(self, email: str, password: str) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/api/auth/login",
            json={"email": email, "password": password},
        )
        self.session_id = data["session_id"]
        return data

    async def logout(self) -> None:
        await self._request("POST", "/api/auth/logout")
        self.session_id = None

    # ---- reads ----

    async def list_channels(self) -> list[Channel]:
        data = await self._request("GET", "/api/channels")
        return [Channel.model_validate(item) for item in data]

    async def list_threads(self, channel_id: int) -> list[Thread]:
        data = await self._request("GET", f"/api/channels/{channel_id}/threads")
        return [Thread.model_validate(item) for item in data]

    async def list_messages(self, thread_id: int) -> list[Message]:
        data = await self._request("GET", f"/api/threads/{thread_id}/messages")
        return [Message.model_validate(item) for item in data]

    async def list_replies(self, message_id: int) -> list[Reply]:
        data = await self._request("GET", f"/api/messages/{message_id}/replies")
        return [Reply.model_validate(item) for item in data]

    async def list_tasks(
        self,
        status: str | None = None,
        channel_id: int | None = None,
        thread_id: int | None = None,
    ) -> list[Task]:
        params = {
            key: value
            for key, value in (
                ("status", status),
                ("channel_id", channel_id),
                ("thread_id", thread_id),
            )
            if value is not None
        }
        data = await self._request("GET", "/api/tasks", params=params)
        return [Task.model_validate(item) for item in data]

    # ---- writes ----

    async def create_channel(self, name: str) -> Channel:
        data = await self._request("POST", "/api/channels", json={"name": name})
        return Channel.model_validate(data)

    async def post_message(
        self,
        thread_id: int,
        content: str,
        create_task: bool = False,
        idempotency_key: str | None = None,
    ) -> Message:
        body: dict[str, Any] = {"content": content, "create_task": create_task}
        if idempotency_key is not None:
            body["idempotency_key"] = idempotency_key
        data = await self._request("POST", f"/api/threads/{thread_id}/messages", json=body)
        return Message.model_validate(data)

    async def update_task(self, task_id: int, **fields: Any) -> Task:
        data = await self._request("PATCH", f"/api/tasks/{task_id}", json=fields)
        return Task.model_validate(data)

    async def mark_thread_read(self, thread_id: int, last_read_message_id: int) -> None:
        await self._request(
            "POST",
            f"/api/threads/{thread_id}/read",
            json={"last_read_message_id": last_read_message_id},
        )

    # ---- stream ----

    async def stream_events(self) -> AsyncIterator[dict[str, Any]]:
        """订阅 /api/events，逐帧产出 JSON 对象（含 connected 帧）"""
        async with self._client.stream(
            "GET",
            "/api/events",
            headers=self._headers(),
            timeout=None,
        ) as response:
            if response.is_error:
                await response.aread()
                raise self._to_error(response)
            async for line in response.aiter_lines():
                frame = parse_sse_line(line)
                if frame is not None:
                    yield frame

    # ---- helpers ----

    def _headers(self) -> dict[str, str]:
        return {SESSION_HEADER: self.session_id} if self.session_id else {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        if response.is_error:
            raise self._to_error(response)
        return response.json()

    @staticmethod
    def _to_error(response: httpx.Response) -> ApiError:
        try:
            error = response.json().get("error", {})
        except (json.JSONDecodeError, AttributeError):
            error = {}
        if not isinstance(error, dict):
            error = {}
        return ApiError(
            status_code=response.status_code,
            code=error.get("code", ""),
            message=error.get("message", ""),
        )
