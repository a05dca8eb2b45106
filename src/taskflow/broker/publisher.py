"""EventPublisher -- mutation 事件发布

对调用方是同步的（await 完成才返回），但发布失败不会向上抛出：
每次尝试有超时，有限次重试后记录 DeliveryFailure 并吸收。
已提交的 mutation 不因发布失败而回滚。
"""

import asyncio
from typing import Any

import structlog
from taskflow.core.exceptions import DeliveryFailure

from .config import BrokerConfig
from .sqlite_broker import SqliteBroker

log = structlog.get_logger()


class EventPublisher:
    """带超时与有限重试的 broker 发布封装"""

    def __init__(self, broker: SqliteBroker, config: BrokerConfig | None = None) -> None:
        self._broker = broker
        self._config = config or BrokerConfig()

    async def publish(self, topic: str, payload: dict[str, Any]) -> str | None:
        """发布单条消息

        Returns:
            消息 ID；所有尝试均失败时返回 None
        """
        last_error: Exception | None = None
        for attempt in range(1, self._config.publish_retries + 1):
            try:
                message_id = await asyncio.wait_for(
                    self._broker.publish(topic, payload),
                    timeout=self._config.publish_timeout_s,
                )
            except Exception as e:
                last_error = e
                log.warning(
                    "event_publish_attempt_failed",
                    topic=topic,
                    attempt=attempt,
                    error=str(e) or type(e).__name__,
                    error_type=type(e).__name__,
                )
                continue
            log.debug("event_published", topic=topic, message_id=message_id)
            return message_id

        failure = DeliveryFailure(topic, last_error)
        log.error(
            "event_publish_dropped",
            topic=topic,
            attempts=self._config.publish_retries,
            error=failure.message,
        )
        return None

    async def publish_many(self, topic: str, payloads: list[dict[str, Any]]) -> int:
        """逐条发布，单条失败不影响其余

        Returns:
            成功发布的条数
        """
        published = 0
        for payload in payloads:
            if await self.publish(topic, payload) is not None:
                published += 1
        return published
