"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store、广播器与服务实例

Store 与 SSEHub 通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Depends, Header, Query, Request
from threadboard.core.config import ChatConfig
from threadboard.core.models import AuthenticatedUser
from threadboard.core.store import StoreGroup

from .services.auth_service import AuthService
from .services.base import Clock, utc_now
from .services.chat_service import ChatService
from .services.sse_hub import SSEHub
from .services.task_service import TaskService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_config(request: Request) -> ChatConfig:
    """从 app.state 获取运行时配置（未设置时使用默认值）"""
    return getattr(request.app.state, "config", None) or ChatConfig()


def get_clock(request: Request) -> Clock:
    """测试可通过 app.state.clock 注入固定时钟"""
    return getattr(request.app.state, "clock", None) or utc_now


def get_auth_service(
    store_group: StoreGroup = Depends(get_store_group),
    config: ChatConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(store_group, config=config, clock=clock)


def get_chat_service(
    store_group: StoreGroup = Depends(get_store_group),
    sse_hub: SSEHub = Depends(get_sse_hub),
    config: ChatConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> ChatService:
    return ChatService(store_group, sse_hub, config=config, clock=clock)


def get_task_service(
    store_group: StoreGroup = Depends(get_store_group),
    sse_hub: SSEHub = Depends(get_sse_hub),
    config: ChatConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> TaskService:
    return TaskService(store_group, sse_hub, config=config, clock=clock)


async def get_current_user(
    x_session_id: str | None = Header(default=None),
    sid: str | None = Query(default=None, description="EventSource 客户端无法设置请求头时使用"),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    """校验会话并滑动过期时间

    token 优先取 X-Session-Id 请求头，其次取 sid 查询参数。
    """
    return await auth_service.authenticate(x_session_id or sid)
