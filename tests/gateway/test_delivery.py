"""实时投递测试

测试内容：
1. DeliveryHub 按用户扇出到多个连接，注销后不再推送
2. 通知类型 -> 客户端事件名映射
3. DeliveryGateway 处理 notification.send，非法消息转为 PoisonMessageError
4. SSE 事件流生成器（推送 + 心跳 + 注销）
"""

import asyncio
import json
from datetime import UTC, datetime

import pytest
from taskflow.broker import BrokerMessage, PoisonMessageError
from taskflow.core.models import Notification, NotificationType, Topic
from taskflow.gateway.routes.stream import notification_stream
from taskflow.gateway.services.delivery_gateway import (
    DEFAULT_CLIENT_EVENT,
    DeliveryGateway,
    client_event_for,
)
from taskflow.gateway.services.delivery_hub import DeliveryHub


def _notification(user_id: str = "a1", type_=NotificationType.NEW_COMMENT) -> Notification:
    return Notification(
        notification_id="01JN0000000000000000000001",
        user_id=user_id,
        type=type_,
        title="New Comment",
        message="New comment on task: Write report",
        task_id="01JT0000000000000000000001",
        comment_id="01JC0000000000000000000001",
        created_at=datetime.now(UTC),
    )


def _message(topic: str, payload: dict) -> BrokerMessage:
    return BrokerMessage(
        message_id="01JM0000000000000000000001",
        topic=topic,
        payload=payload,
        published_at=datetime.now(UTC),
    )


class TestDeliveryHub:
    async def test_fan_out_to_all_connections(self):
        hub = DeliveryHub()
        first = await hub.subscribe("a1")
        second = await hub.subscribe("a1")
        other = await hub.subscribe("a2")

        delivered = await hub.push("a1", {"event": "x"})

        assert delivered == 2
        assert first.get_nowait() == {"event": "x"}
        assert second.get_nowait() == {"event": "x"}
        assert other.empty()
        assert hub.connection_count() == 3

    async def test_offline_user_dropped(self):
        hub = DeliveryHub()
        assert await hub.push("nobody", {"event": "x"}) == 0

    async def test_unsubscribe(self):
        hub = DeliveryHub()
        queue = await hub.subscribe("a1")
        await hub.unsubscribe("a1", queue)

        assert hub.connection_count("a1") == 0
        assert await hub.push("a1", {"event": "x"}) == 0

    async def test_full_queue_evicted(self):
        """消费端卡住的连接被移除，不阻塞其他连接"""
        hub = DeliveryHub(queue_maxsize=1)
        stuck = await hub.subscribe("a1")
        await hub.push("a1", {"n": 1})

        assert await hub.push("a1", {"n": 2}) == 0
        assert hub.connection_count("a1") == 0
        assert stuck.qsize() == 1


class TestClientEventMapping:
    @pytest.mark.parametrize(
        ("notification_type", "event"),
        [
            (NotificationType.TASK_ASSIGNED, "task:updated"),
            (NotificationType.TASK_STATUS_CHANGED, "task:updated"),
            (NotificationType.NEW_COMMENT, "comment:new"),
            ("SOMETHING_ELSE", DEFAULT_CLIENT_EVENT),
        ],
    )
    def test_mapping(self, notification_type, event):
        assert client_event_for(notification_type) == event


class TestDeliveryGateway:
    async def test_handle_pushes_frame(self):
        hub = DeliveryHub()
        queue = await hub.subscribe("a1")
        gateway = DeliveryGateway(hub)
        notification = _notification()

        await gateway.handle(_message(Topic.NOTIFICATION_SEND, notification.to_wire()))

        frame = queue.get_nowait()
        assert frame["event"] == "comment:new"
        assert frame["data"]["id"] == notification.notification_id
        assert frame["data"]["commentId"] == notification.comment_id

    async def test_recipient_offline(self):
        gateway = DeliveryGateway(DeliveryHub())
        assert await gateway.deliver(_notification()) == 0

    async def test_invalid_payload_is_poison(self):
        gateway = DeliveryGateway(DeliveryHub())
        with pytest.raises(PoisonMessageError):
            await gateway.handle(_message(Topic.NOTIFICATION_SEND, {"userId": "a1"}))

    async def test_wrong_topic_is_poison(self):
        gateway = DeliveryGateway(DeliveryHub())
        with pytest.raises(PoisonMessageError):
            await gateway.handle(_message("task.created", _notification().to_wire()))


class TestNotificationStream:
    async def test_stream_yields_events_and_heartbeats(self):
        hub = DeliveryHub()
        stream = notification_stream(hub, "a1", heartbeat_interval=0.05)

        # 首个事件之前无推送：心跳
        heartbeat = await asyncio.wait_for(anext(stream), timeout=1)
        assert heartbeat == {"comment": "heartbeat"}
        assert hub.connection_count("a1") == 1

        notification = _notification(type_=NotificationType.TASK_ASSIGNED)
        await DeliveryGateway(hub).deliver(notification)
        event = await asyncio.wait_for(anext(stream), timeout=1)

        assert event["event"] == "task:updated"
        assert event["id"] == notification.notification_id
        assert json.loads(event["data"])["userId"] == "a1"

        await stream.aclose()
        assert hub.connection_count("a1") == 0
