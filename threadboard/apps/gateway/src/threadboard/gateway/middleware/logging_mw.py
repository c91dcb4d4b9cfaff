"""LoggingMiddleware -- 请求级日志

- request_id 沿用客户端的 X-Request-ID，缺省时生成 ULID，并回写到响应头
- request_completed 带 duration_ms
- /api/events 是长连接：响应头发出即记录 event_stream_opened，耗时无意义
- /health、/ready 探针只记 DEBUG
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"

EVENT_STREAM_PATH = "/api/events"
_PROBE_PATHS = frozenset({"/health", "/ready"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        log = structlog.get_logger()
        is_probe = path in _PROBE_PATHS

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        if path == EVENT_STREAM_PATH and response.status_code == 200:
            await log.ainfo("event_stream_opened")
        elif is_probe:
            await log.adebug(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
