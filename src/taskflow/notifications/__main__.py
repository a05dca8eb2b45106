"""Notification Consumer 独立进程入口 -- python -m taskflow.notifications

在 gateway 之外单独运行 mutation 事件消费（可水平扩展：
同一 consumer group 内的多个实例竞争领取，幂等键保证不重复落库）。
"""

import asyncio
import signal

import structlog
from taskflow.broker import BrokerConsumer, EventPublisher, create_broker, load_broker_config
from taskflow.core.config import get_broker_db_path, get_notifications_db_path
from taskflow.core.logging_config import configure_logging
from taskflow.core.models import MUTATION_TOPICS
from taskflow.core.store import create_notification_store

from .consumer import NOTIFICATIONS_GROUP, NotificationConsumer

log = structlog.get_logger()


async def run_worker() -> None:
    """运行消费循环直到收到 SIGINT / SIGTERM"""
    config = load_broker_config()
    store = await create_notification_store(get_notifications_db_path())
    broker = await create_broker(get_broker_db_path(), lease_s=config.lease_s)

    consumer = BrokerConsumer(
        broker,
        NOTIFICATIONS_GROUP,
        MUTATION_TOPICS,
        NotificationConsumer(store, EventPublisher(broker, config)).handle,
        config,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    consumer.start()
    log.info("notification_worker_started")
    try:
        await stop.wait()
    finally:
        await consumer.stop()
        await store.conn.close()
        await broker.conn.close()
        log.info("notification_worker_stopped")


def main() -> None:
    """CLI 主入口"""
    configure_logging("notification-worker")
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
