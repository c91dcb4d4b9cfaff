"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + SSEHub 初始化 + 默认频道 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from threadboard.core.config import get_db_path, load_chat_config
from threadboard.core.exceptions import InvalidRequestError, ThreadboardError
from threadboard.core.store import create_store_group

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import auth, channels, health, messages, stream, tasks
from .services.chat_service import ChatService
from .services.sse_hub import SSEHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和 SSEHub，关闭时清理连接"""
    config = getattr(app.state, "config", None) or load_chat_config()
    app.state.config = config

    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group
    app.state.sse_hub = SSEHub(queue_maxsize=config.sse_queue_maxsize)

    if config.seed_default_channel:
        await ChatService(store_group, config=config).seed_default_workspace()

    log.info("gateway_started", db_path=get_db_path())

    yield

    # 关闭：清理数据库连接
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


async def threadboard_error_handler(request: Request, exc: ThreadboardError) -> JSONResponse:
    """领域异常统一渲染为 {"error": {"code", "message"[, "fields"]}}"""
    error: dict = {"code": exc.code, "message": exc.message}
    if isinstance(exc, InvalidRequestError) and exc.fields:
        error["fields"] = exc.fields
    if exc.status_code >= 500:
        log.error("request_failed", code=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": error})


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Threadboard Gateway",
        version="0.1.0",
        description="Threadboard 实时团队聊天 + 任务看板 API",
        lifespan=lifespan,
    )

    config = load_chat_config()
    app.state.config = config

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 在最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.add_exception_handler(ThreadboardError, threadboard_error_handler)

    # 初始化日志
    setup_logging()
    setup_logfire()

    # 注册路由
    app.include_router(auth.router, tags=["auth"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(channels.router, tags=["channels"])
    app.include_router(messages.router, tags=["messages"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
