"""SSE 实时通知流 -- WebSocket 之外的备选传输

GET /api/stream/notifications?token=...

与 WebSocket 共用 DeliveryHub；认证通过即隐式注册。
15 秒心跳保活（TASKFLOW_SSE_HEARTBEAT_INTERVAL）。
"""

import asyncio
import json
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse
from taskflow.core.config import SSE_HEARTBEAT_INTERVAL

from ..deps import get_delivery_hub
from ..services.delivery_hub import DeliveryHub

router = APIRouter()


async def notification_stream(
    hub: DeliveryHub,
    user_id: str,
    heartbeat_interval: float = SSE_HEARTBEAT_INTERVAL,
) -> AsyncGenerator[dict, None]:
    """订阅 hub 并把推送帧转换为 SSE 事件"""
    queue = await hub.subscribe(user_id)
    try:
        while True:
            try:
                frame = await asyncio.wait_for(queue.get(), timeout=heartbeat_interval)
            except TimeoutError:
                # 心跳保活
                yield {"comment": "heartbeat"}
                continue
            data = frame["data"]
            yield {
                "id": data.get("id"),
                "event": frame["event"],
                "data": json.dumps(data, ensure_ascii=False),
            }
    finally:
        await hub.unsubscribe(user_id, queue)


@router.get("/api/stream/notifications")
async def stream_notifications(
    request: Request,
    token: str | None = Query(default=None),
    hub: DeliveryHub = Depends(get_delivery_hub),
):
    user_id = request.app.state.token_verifier.verify(token)
    if user_id is None:
        return JSONResponse(
            status_code=401,
            content={
                "error": {
                    "code": "UNAUTHENTICATED",
                    "message": "Invalid or missing token",
                }
            },
        )

    return EventSourceResponse(notification_stream(hub, user_id))
