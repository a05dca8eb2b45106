"""WebSocket 实时通知

WS /ws/notifications?token=...

握手：
1. 连接时携带凭证（query token），无法识别则拒绝握手
2. 认证后客户端发送 {"event": "register", "userId": ...}
3. 宽限期（TASKFLOW_REGISTER_GRACE_MS）结束后且 userId 与认证身份一致才完成注册
4. 之后推送帧格式 {"event": <客户端事件名>, "data": <通知>}
"""

import asyncio
import contextlib

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from ..services.delivery_hub import DeliveryHub

log = structlog.get_logger()

router = APIRouter()

# 凭证无法识别时的关闭码（应用自定义区间）
WS_CLOSE_UNAUTHORIZED = 4401


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """把注册表队列中的消息转发到 socket"""
    while True:
        frame = await queue.get()
        await websocket.send_json(frame)


def _error_frame(code: str, message: str) -> dict:
    return {"event": "error", "data": {"code": code, "message": message}}


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
):
    state = websocket.app.state
    user_id = state.token_verifier.verify(token)
    if user_id is None:
        log.warning("ws_auth_rejected")
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    authenticated_at = loop.time()
    grace_s = state.register_grace_ms / 1000
    hub: DeliveryHub = state.delivery_hub

    queue: asyncio.Queue | None = None
    pump: asyncio.Task | None = None
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                log.warning("ws_invalid_frame", user_id=user_id)
                await websocket.send_json(_error_frame("INVALID_FRAME", "Frame is not valid JSON"))
                continue
            if not isinstance(message, dict) or message.get("event") != "register":
                await websocket.send_json(_error_frame("UNKNOWN_EVENT", "Unsupported event"))
                continue
            if message.get("userId") != user_id:
                log.warning("ws_register_mismatch", user_id=user_id)
                await websocket.send_json(
                    _error_frame("REGISTER_DENIED", "userId does not match credential")
                )
                continue
            if queue is not None:
                continue

            # 宽限期内的注册延后到宽限期结束
            remaining = grace_s - (loop.time() - authenticated_at)
            if remaining > 0:
                await asyncio.sleep(remaining)

            queue = await hub.subscribe(user_id)
            pump = asyncio.create_task(_pump(websocket, queue))
            await websocket.send_json({"event": "registered", "data": {"userId": user_id}})
    except WebSocketDisconnect:
        log.info("ws_disconnected", user_id=user_id)
    finally:
        if pump is not None:
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await pump
        if queue is not None:
            await hub.unsubscribe(user_id, queue)
