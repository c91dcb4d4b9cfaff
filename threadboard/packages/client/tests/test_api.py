"""HttpChatApi 单元测试 -- 使用 httpx.MockTransport

测试内容：
1. SSE 行解析
2. 会话 header 注入
3. 错误响应转换为 ApiError
4. 事件流逐帧产出
"""

import json

import httpx
import pytest
from threadboard.client import ApiError, HttpChatApi, parse_sse_line


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


class TestParseSseLine:
    def test_data_line(self):
        assert parse_sse_line('data: {"type": "connected"}') == {"type": "connected"}

    def test_comment_and_blank_ignored(self):
        assert parse_sse_line(": keep-alive") is None
        assert parse_sse_line("") is None

    def test_malformed_json_ignored(self):
        assert parse_sse_line("data: {not json") is None

    def test_non_object_ignored(self):
        assert parse_sse_line("data: [1, 2]") is None


class TestHttpChatApi:
    async def test_login_sets_session_header(self):
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("X-Session-Id"))
            if request.url.path == "/api/auth/login":
                return httpx.Response(
                    200,
                    json={"id": 1, "name": "a", "email": "a@example.com", "session_id": "tok"},
                )
            return httpx.Response(200, json=[])

        api = HttpChatApi(client=_client(handler))
        await api.login("a@example.com", "pw")
        assert await api.list_channels() == []
        assert seen == [None, "tok"]

    async def test_list_tasks_params(self):
        captured: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(request.url.params)
            return httpx.Response(200, json=[])

        api = HttpChatApi(session_id="tok", client=_client(handler))
        await api.list_tasks(channel_id=3)
        assert captured == {"channel_id": "3"}

    async def test_error_response_raises_api_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={"error": {"code": "THREAD_NOT_FOUND", "message": "Thread not found."}},
            )

        api = HttpChatApi(session_id="tok", client=_client(handler))
        with pytest.raises(ApiError) as exc_info:
            await api.list_messages(99)
        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "THREAD_NOT_FOUND"

    async def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        api = HttpChatApi(client=_client(handler))
        with pytest.raises(ApiError) as exc_info:
            await api.list_channels()
        assert exc_info.value.status_code == 502
        assert exc_info.value.code == ""

    async def test_stream_events_yields_frames(self):
        body = "\n".join(
            [
                f"data: {json.dumps({'type': 'connected'})}",
                "",
                ": keep-alive",
                "",
                "data: {broken",
                "",
                f"data: {json.dumps({'type': 'channel_created', 'channel': {'id': 1}})}",
                "",
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=body.encode(),
                headers={"content-type": "text/event-stream"},
            )

        api = HttpChatApi(session_id="tok", client=_client(handler))
        frames = [frame async for frame in api.stream_events()]
        assert [f["type"] for f in frames] == ["connected", "channel_created"]

    async def test_stream_unauthorized(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"code": "UNAUTHORIZED", "message": "x"}})

        api = HttpChatApi(client=_client(handler))
        with pytest.raises(ApiError) as exc_info:
            async for _ in api.stream_events():
                pass
        assert exc_info.value.status_code == 401
