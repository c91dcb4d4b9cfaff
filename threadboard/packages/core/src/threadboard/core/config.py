"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、会话 TTL、done 任务保留窗口、SSE 心跳间隔等可配置项。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("THREADBOARD_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "THREADBOARD_DB_PATH",
        str(_get_base_dir() / "sqlite" / "threadboard.db"),
    )


# 任务列表单次返回上限
TASK_LIST_LIMIT: int = 200

# TaskBot 自定义消息模板最大长度
BOT_MESSAGE_MAX_LENGTH: int = 300

# TaskBot 系统用户
TASK_BOT_NAME: str = "TaskBot"
TASK_BOT_EMAIL: str = "taskbot@system.local"
TASK_BOT_PASSWORD_HASH: str = "__system__"

DEFAULT_TASK_BOT_MESSAGE_TEMPLATE: str = 'Task created: "{title}" by {creator}'

# 默认工作区
DEFAULT_CHANNEL_NAME: str = "general"
MAIN_THREAD_TITLE: str = "main"


class ChatConfig(BaseModel):
    """运行时配置 -- 从环境变量加载

    环境变量:
        THREADBOARD_SESSION_TTL_DAYS: 会话滑动过期窗口（天，默认 7）
        THREADBOARD_DONE_TASK_RETENTION_DAYS: done 任务可见窗口（天，默认 14）
        THREADBOARD_SSE_HEARTBEAT_INTERVAL: SSE 心跳间隔（秒，默认 15）
        THREADBOARD_SSE_QUEUE_MAXSIZE: 单个订阅者队列容量（默认 100）
        THREADBOARD_FRONTEND_ORIGIN: CORS 允许的前端地址
        THREADBOARD_SEED_DEFAULT_CHANNEL: 启动时是否创建 general 频道
    """

    session_ttl_days: int = Field(default=7, ge=1, description="会话 TTL（天）")
    done_task_retention_days: int = Field(
        default=14,
        ge=0,
        description="done 任务在默认列表中的可见窗口（天）",
    )
    sse_heartbeat_interval: float = Field(
        default=15,
        gt=0,
        description="SSE 心跳间隔（秒）",
    )
    sse_queue_maxsize: int = Field(default=100, ge=1, description="订阅者队列容量")
    frontend_origin: str = Field(
        default="http://localhost:3000",
        description="CORS 允许的前端 Origin",
    )
    seed_default_channel: bool = Field(
        default=True,
        description="启动时若无频道则创建 general/main",
    )


_INT_ENV_FIELDS = {
    "THREADBOARD_SESSION_TTL_DAYS": "session_ttl_days",
    "THREADBOARD_DONE_TASK_RETENTION_DAYS": "done_task_retention_days",
    "THREADBOARD_SSE_QUEUE_MAXSIZE": "sse_queue_maxsize",
}


def load_chat_config() -> ChatConfig:
    """从环境变量加载 ChatConfig

    非法数值只记录 warning 并回退默认值，不阻塞启动。
    """
    kwargs: dict = {}

    for env_var, field_name in _INT_ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[field_name] = int(val)
            except ValueError:
                log.warning(
                    "invalid_int_config",
                    env_var=env_var,
                    value=val,
                    fallback=ChatConfig.model_fields[field_name].default,
                )

    if val := os.environ.get("THREADBOARD_SSE_HEARTBEAT_INTERVAL"):
        try:
            kwargs["sse_heartbeat_interval"] = float(val)
        except ValueError:
            log.warning(
                "invalid_float_config",
                env_var="THREADBOARD_SSE_HEARTBEAT_INTERVAL",
                value=val,
                fallback=15,
            )

    if val := os.environ.get("THREADBOARD_FRONTEND_ORIGIN"):
        kwargs["frontend_origin"] = val

    if val := os.environ.get("THREADBOARD_SEED_DEFAULT_CHANNEL"):
        kwargs["seed_default_channel"] = val.lower() not in ("0", "false", "no")

    return ChatConfig(**kwargs)
