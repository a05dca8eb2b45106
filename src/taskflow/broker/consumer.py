"""BrokerConsumer -- 通用消费循环

顺序执行 claim -> handle -> ack。处理器抛出的异常不会终止循环：
- PoisonMessageError：立即转入死信
- 其他异常：nack，达到最大投递次数后转入死信
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from .config import BrokerConfig
from .exceptions import PoisonMessageError
from .sqlite_broker import BrokerMessage, SqliteBroker

log = structlog.get_logger()

MessageHandler = Callable[[BrokerMessage], Awaitable[None]]


class BrokerConsumer:
    """单个 consumer group 的消费循环（作为 asyncio task 运行）"""

    def __init__(
        self,
        broker: SqliteBroker,
        group: str,
        topics: list[str] | tuple[str, ...],
        handler: MessageHandler,
        config: BrokerConfig | None = None,
        batch_size: int = 10,
    ) -> None:
        self._broker = broker
        self._group = group
        self._topics = tuple(str(t) for t in topics)
        self._handler = handler
        self._config = config or BrokerConfig()
        self._batch_size = batch_size
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def group(self) -> str:
        return self._group

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """领取并处理一批消息

        Returns:
            本批处理的消息数
        """
        messages = await self._broker.claim(
            self._group,
            self._topics,
            limit=self._batch_size,
            lease_s=self._config.lease_s,
        )
        for message in messages:
            await self._handle(message)
        return len(messages)

    async def _handle(self, message: BrokerMessage) -> None:
        try:
            await self._handler(message)
        except PoisonMessageError as e:
            log.error(
                "consumer_poison_message",
                consumer_group=self._group,
                topic=message.topic,
                message_id=message.message_id,
                reason=e.reason,
            )
            await self._broker.dead_letter(self._group, message.message_id, e.reason)
            return
        except Exception as e:
            log.warning(
                "consumer_handler_failed",
                consumer_group=self._group,
                topic=message.topic,
                message_id=message.message_id,
                attempts=message.attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._broker.nack(
                self._group,
                message.message_id,
                error=f"{type(e).__name__}: {e}",
                max_attempts=self._config.max_attempts,
                retry_backoff_s=self._config.retry_backoff_s,
            )
            return

        await self._broker.ack(self._group, message.message_id)

    async def run(self) -> None:
        """消费循环，直到 stop() 被调用"""
        log.info("consumer_started", consumer_group=self._group, topics=list(self._topics))
        while not self._stopping.is_set():
            try:
                processed = await self.run_once()
            except Exception as e:
                # broker 暂时不可用时不退出循环
                log.error(
                    "consumer_claim_failed",
                    consumer_group=self._group,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                processed = 0
            if processed == 0:
                try:
                    await asyncio.wait_for(
                        self._stopping.wait(),
                        timeout=self._config.poll_interval_s,
                    )
                except TimeoutError:
                    pass
        log.info("consumer_stopped", consumer_group=self._group)

    def start(self) -> asyncio.Task:
        """以后台 task 启动消费循环"""
        self._stopping.clear()
        self._task = asyncio.create_task(self.run(), name=f"consumer:{self._group}")
        return self._task

    async def stop(self) -> None:
        """请求停止并等待当前批次处理完成"""
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
