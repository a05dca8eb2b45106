"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含三个 SQLite 库的连通性与后台 consumer 状态。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


async def _check_sqlite(conn) -> str:
    try:
        cursor = await conn.execute("SELECT 1")
        await cursor.fetchone()
        return "ok"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        return f"error: {str(e)}"


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. tasks_db / notifications_db / broker_db: 数据库连通性
    2. consumer: 后台 consumer 是否运行（未启动时为 skipped）
    """
    state = request.app.state
    checks: dict[str, str] = {}

    checks["tasks_db"] = await _check_sqlite(state.store_group.conn)
    checks["notifications_db"] = await _check_sqlite(state.notification_store.conn)
    checks["broker_db"] = await _check_sqlite(state.broker.conn)

    for consumer in getattr(state, "consumers", []):
        if not state.consumers_started:
            checks[f"consumer:{consumer.group}"] = "skipped"
        elif consumer.is_running:
            checks[f"consumer:{consumer.group}"] = "ok"
        else:
            checks[f"consumer:{consumer.group}"] = "stopped"

    all_ok = all(v in ("ok", "skipped") for v in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
