"""TraceMiddleware -- 资源级追踪

从 /api/<collection>/<id> 路径中解析资源类型与 ID，
绑定到 structlog contextvars，贯穿该请求内的全部日志。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# 路径集合名 -> 日志字段名
_RESOURCE_KEYS = {
    "channels": "channel_id",
    "threads": "thread_id",
    "messages": "message_id",
    "replies": "reply_id",
    "tasks": "task_id",
}


def extract_resource_ids(path: str) -> dict[str, int]:
    """解析路径中的资源 ID，例如 /api/messages/7/replies -> {"message_id": 7}"""
    parts = [part for part in path.split("/") if part]
    found: dict[str, int] = {}
    for i, part in enumerate(parts[:-1]):
        key = _RESOURCE_KEYS.get(part)
        if key is not None and parts[i + 1].isdigit():
            found[key] = int(parts[i + 1])
    return found


class TraceMiddleware(BaseHTTPMiddleware):
    """资源级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        resource_ids = extract_resource_ids(request.url.path)
        if resource_ids:
            structlog.contextvars.bind_contextvars(**resource_ids)

        return await call_next(request)
