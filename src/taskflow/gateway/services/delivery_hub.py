"""DeliveryHub -- 进程内的实时连接注册表

user_id -> 若干 asyncio.Queue（每个 live 连接一个）。WebSocket 与 SSE
连接都在此注册；注册表只是投递缓存，进程重启后从空开始重建。
注册、注销与推送来自不同协程，统一由 asyncio.Lock 保护。
"""

import asyncio
from collections import defaultdict
from typing import Any

import structlog

log = structlog.get_logger()


class DeliveryHub:
    """按用户扇出的广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # user_id -> set of asyncio.Queue
        self._connections: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize
        self._lock = asyncio.Lock()

    async def subscribe(self, user_id: str) -> asyncio.Queue:
        """注册一个 live 连接

        Returns:
            asyncio.Queue 实例，推送给该用户的消息会被放入此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        async with self._lock:
            self._connections[user_id].add(queue)
        log.info("delivery_connection_registered", user_id=user_id)
        return queue

    async def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        """注销连接（断开时调用）"""
        async with self._lock:
            queues = self._connections.get(user_id)
            if queues is None:
                return
            queues.discard(queue)
            if not queues:
                del self._connections[user_id]
        log.info("delivery_connection_removed", user_id=user_id)

    async def push(self, user_id: str, message: dict[str, Any]) -> int:
        """推送给该用户的所有 live 连接

        Returns:
            成功入队的连接数；0 表示用户当前不在线，消息被丢弃
        """
        delivered = 0
        async with self._lock:
            queues = self._connections.get(user_id)
            if not queues:
                return 0
            dead_queues = []
            for queue in queues:
                try:
                    queue.put_nowait(message)
                    delivered += 1
                except asyncio.QueueFull:
                    dead_queues.append(queue)

            # 清理已满的队列（消费端卡住的连接）
            for q in dead_queues:
                queues.discard(q)
            if not queues:
                del self._connections[user_id]
        return delivered

    def connection_count(self, user_id: str | None = None) -> int:
        """某用户（或全部用户）的 live 连接数"""
        if user_id is not None:
            return len(self._connections.get(user_id, ()))
        return sum(len(queues) for queues in self._connections.values())
