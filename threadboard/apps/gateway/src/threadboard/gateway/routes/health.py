"""健康检查路由

GET /health: 进程存活即 200
GET /ready: 数据库可查询才算就绪；同时报告 journal_mode 与在线 SSE 订阅数
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse
from threadboard.core.store import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()


async def _check_sqlite(request: Request) -> tuple[bool, dict[str, str]]:
    conn = request.app.state.store_group.conn
    try:
        cursor = await conn.execute("SELECT count(*) FROM channels")
        await cursor.fetchone()
        wal = await verify_wal_mode(conn)
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        return False, {"sqlite": f"error: {e}"}
    # 非 WAL 只影响并发读写，不判为未就绪
    return True, {"sqlite": "ok", "journal_mode": "wal" if wal else "other"}


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查

    Returns:
        200 {"status": "ready", "checks": {...}}；SQLite 不可用时 503 not_ready
    """
    ok, checks = await _check_sqlite(request)

    hub = getattr(request.app.state, "sse_hub", None)
    checks["sse_subscribers"] = hub.subscriber_count if hub is not None else 0

    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ready" if ok else "not_ready", "checks": checks},
    )
