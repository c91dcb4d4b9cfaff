"""structlog 配置模块

dev 模式：ConsoleRenderer 彩色输出
json 模式：每行一个 JSON 对象，附带 service 字段，便于日志平台按服务聚合
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE=true 时启用，失败降级为本地日志。
"""

import logging
import os

import structlog

SERVICE_NAME = "threadboard-gateway"

# 第三方库日志默认只保留 WARNING 以上：
# aiosqlite 每条 SQL 一条 DEBUG，sse_starlette 每次 ping 一条 DEBUG
_NOISY_LOGGERS = ("aiosqlite", "sse_starlette", "httpx", "httpcore")


def _add_service(
    logger: object, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 与标准库 logging

    Args:
        log_format: "json" 或 "dev"，默认读取 THREADBOARD_LOG_FORMAT
        log_level: 日志级别名，默认读取 THREADBOARD_LOG_LEVEL（INFO）

    THREADBOARD_LOG_THIRD_PARTY=debug 时不压低第三方库日志级别。
    """
    log_format = log_format or os.environ.get("THREADBOARD_LOG_FORMAT", "dev")
    level = _resolve_level(log_level or os.environ.get("THREADBOARD_LOG_LEVEL", "INFO"))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        shared_processors += [_add_service, structlog.processors.format_exc_info]
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    third_party_level = (
        logging.DEBUG
        if os.environ.get("THREADBOARD_LOG_THIRD_PARTY", "").lower() == "debug"
        else max(level, logging.WARNING)
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def setup_logfire() -> bool:
    """Logfire 可选初始化

    Returns:
        是否成功启用
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return False
    try:
        import logfire

        logfire.configure(service_name=SERVICE_NAME)
        logfire.instrument_fastapi()
    except Exception:
        # 初始化失败不影响服务运行
        structlog.get_logger().warning(
            "logfire_init_failed",
            message="Logfire 初始化失败，降级为纯本地日志",
        )
        return False
    return True
