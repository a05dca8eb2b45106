"""Delivery Gateway -- notification.send 消息 -> live 连接

把通知类型映射为客户端事件名，推送到接收者的所有 live 连接。
接收者不在线时静默丢弃，客户端重连后通过拉取接口对账。
"""

from typing import Any

import structlog
from pydantic import ValidationError
from taskflow.broker.exceptions import PoisonMessageError
from taskflow.broker.sqlite_broker import BrokerMessage
from taskflow.core.models import Notification, NotificationType, Topic

from .delivery_hub import DeliveryHub

log = structlog.get_logger()

# Delivery Gateway 的 consumer group 名称
DELIVERY_GROUP = "delivery-gateway"

_CLIENT_EVENTS: dict[str, str] = {
    NotificationType.TASK_ASSIGNED: "task:updated",
    NotificationType.TASK_STATUS_CHANGED: "task:updated",
    NotificationType.NEW_COMMENT: "comment:new",
}

DEFAULT_CLIENT_EVENT = "notification"


def client_event_for(notification_type: str) -> str:
    """通知类型 -> 客户端事件名"""
    return _CLIENT_EVENTS.get(notification_type, DEFAULT_CLIENT_EVENT)


class DeliveryGateway:
    """notification.send 消息处理器"""

    def __init__(self, hub: DeliveryHub) -> None:
        self._hub = hub

    async def handle(self, message: BrokerMessage) -> None:
        """BrokerConsumer 回调

        Raises:
            PoisonMessageError: topic 不符或 payload 不是合法的通知
        """
        if message.topic != Topic.NOTIFICATION_SEND:
            raise PoisonMessageError(message.message_id, f"unexpected topic {message.topic}")
        try:
            notification = Notification.model_validate(message.payload)
        except ValidationError as e:
            raise PoisonMessageError(
                message.message_id,
                f"invalid notification ({e.error_count()} errors)",
            ) from e
        await self.deliver(notification)

    async def deliver(self, notification: Notification) -> int:
        """推送到接收者的所有 live 连接

        Returns:
            收到推送的连接数
        """
        event = client_event_for(notification.type)
        frame: dict[str, Any] = {"event": event, "data": notification.to_wire()}
        delivered = await self._hub.push(notification.user_id, frame)
        if delivered:
            log.info(
                "notification_delivered",
                notification_id=notification.notification_id,
                user_id=notification.user_id,
                client_event=event,
                connections=delivered,
            )
        else:
            log.debug(
                "notification_delivery_dropped",
                notification_id=notification.notification_id,
                user_id=notification.user_id,
            )
        return delivered
