"""Notification Consumer -- mutation 事件 -> 幂等持久化的通知

订阅 task.created / task.updated / comment.created。broker 为 at-least-once 投递，
同一事件可能多次到达：consumer 从事件内容派生稳定的幂等键，
以 insert-if-absent 写入 Notification Store，仅在新建时发布 notification.send。
"""

import hashlib
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError
from taskflow.broker.exceptions import PoisonMessageError
from taskflow.broker.publisher import EventPublisher
from taskflow.broker.sqlite_broker import BrokerMessage
from taskflow.core.models.enums import MUTATION_TOPICS, Topic
from taskflow.core.models.notification import Notification, NotificationEvent
from taskflow.core.store.protocols import NotificationStore
from taskflow.core.store.transaction import write_transaction
from ulid import ULID

log = structlog.get_logger()

# Notification Consumer 的 consumer group 名称
NOTIFICATIONS_GROUP = "notifications"


def derive_dedup_key(topic: str, event: NotificationEvent, fallback_version: str = "") -> str:
    """由 (事件类型, task_id, comment_id, 接收者, 来源版本) 派生幂等键

    来源版本缺失时依次退回到事件时间、broker 消息 ID。
    """
    version = event.source_version
    if not version and event.occurred_at is not None:
        version = event.occurred_at.isoformat()
    if not version:
        version = fallback_version
    parts = (topic, event.task_id or "", event.comment_id or "", event.user_id, version)
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class NotificationConsumer:
    """mutation 事件处理器"""

    def __init__(
        self,
        store: NotificationStore,
        publisher: EventPublisher,
    ) -> None:
        self._store = store
        self._publisher = publisher

    async def handle(self, message: BrokerMessage) -> None:
        """BrokerConsumer 回调：解析 payload 并幂等落库

        Raises:
            PoisonMessageError: topic 未订阅或 payload 无法解析（不重试）
        """
        if message.topic not in MUTATION_TOPICS:
            raise PoisonMessageError(message.message_id, f"unexpected topic {message.topic}")
        try:
            event = NotificationEvent.model_validate(message.payload)
        except ValidationError as e:
            raise PoisonMessageError(
                message.message_id,
                f"invalid payload ({e.error_count()} errors)",
            ) from e

        log.info(
            "mutation_event_received",
            topic=message.topic,
            message_id=message.message_id,
            attempts=message.attempts,
            user_id=event.user_id,
        )
        await self.consume(message.topic, event, fallback_version=message.message_id)

    async def consume(
        self,
        topic: str,
        event: NotificationEvent,
        fallback_version: str = "",
    ) -> tuple[Notification, bool]:
        """按幂等键持久化通知；新建时发布 notification.send

        Returns:
            (通知, created)
        """
        dedup_key = derive_dedup_key(topic, event, fallback_version)
        candidate = Notification(
            notification_id=str(ULID()),
            user_id=event.user_id,
            type=event.type,
            title=event.title,
            message=event.message,
            task_id=event.task_id,
            comment_id=event.comment_id,
            metadata=event.metadata,
            read=False,
            created_at=datetime.now(UTC),
            dedup_key=dedup_key,
        )

        async with write_transaction(self._store.conn, self._store.write_lock):
            notification, created = await self._store.insert_if_absent(candidate)

        if not created:
            log.info(
                "notification_duplicate_skipped",
                topic=topic,
                notification_id=notification.notification_id,
                user_id=event.user_id,
            )
            return notification, False

        log.info(
            "notification_created",
            topic=topic,
            notification_id=notification.notification_id,
            user_id=notification.user_id,
            type=notification.type.value,
        )
        await self._publisher.publish(Topic.NOTIFICATION_SEND, notification.to_wire())
        return notification, True
