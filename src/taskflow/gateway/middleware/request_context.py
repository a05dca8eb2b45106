"""RequestContextMiddleware -- 请求级日志上下文

每个 HTTP 请求绑定：
- request_id: 沿用上游 X-Request-ID，否则生成 ULID，并回写到响应头
- user_id: X-User-Id 请求头（若有）
- trace_id: 路径 /api/tasks/{task_id}/... 中的 task_id，串联同一任务的所有操作日志
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"

# ULID 字符串长度
_ULID_LENGTH = 26

log = structlog.get_logger()


def trace_id_from_path(path: str) -> str | None:
    """从 /api/tasks/{task_id} 形式的路径提取 trace_id"""
    parts = path.strip("/").split("/")
    try:
        task_id = parts[parts.index("tasks") + 1]
    except (ValueError, IndexError):
        return None
    return f"trace-{task_id}" if len(task_id) == _ULID_LENGTH else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())

        structlog.contextvars.clear_contextvars()
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        if user_id := request.headers.get("x-user-id"):
            context["user_id"] = user_id
        if trace_id := trace_id_from_path(request.url.path):
            context["trace_id"] = trace_id
        structlog.contextvars.bind_contextvars(**context)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise

        log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
