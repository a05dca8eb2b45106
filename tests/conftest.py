"""全局 pytest 配置 -- 临时 SQLite 数据库 + 共享 Store / broker fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from taskflow.broker import BrokerConfig, EventPublisher, SqliteBroker, create_broker
from taskflow.core.models import Task, TaskPriority, TaskStatus
from taskflow.core.store import (
    SqliteNotificationStore,
    StoreGroup,
    create_notification_store,
    create_store_group,
)


@pytest.fixture
def broker_config() -> BrokerConfig:
    """测试用 broker 配置：快速轮询、无退避、较小的最大投递次数"""
    return BrokerConfig(
        publish_timeout_s=1.0,
        publish_retries=2,
        lease_s=30.0,
        max_attempts=3,
        poll_interval_s=0.01,
        retry_backoff_s=0.0,
    )


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已初始化的临时任务库"""
    group = await create_store_group(str(tmp_path / "tasks.db"))
    yield group
    await group.conn.close()


@pytest_asyncio.fixture
async def notification_store(tmp_path: Path) -> AsyncGenerator[SqliteNotificationStore, None]:
    """已初始化的临时通知库"""
    store = await create_notification_store(str(tmp_path / "notifications.db"))
    yield store
    await store.conn.close()


@pytest_asyncio.fixture
async def broker(tmp_path: Path, broker_config: BrokerConfig) -> AsyncGenerator[SqliteBroker, None]:
    """已初始化的临时 broker"""
    instance = await create_broker(str(tmp_path / "broker.db"), lease_s=broker_config.lease_s)
    yield instance
    await instance.conn.close()


@pytest.fixture
def publisher(broker: SqliteBroker, broker_config: BrokerConfig) -> EventPublisher:
    return EventPublisher(broker, broker_config)


def _make_task(
    task_id: str = "01JTASK0000000000000000001",
    creator_id: str = "creator",
    assignee_ids: list[str] | None = None,
    **overrides,
) -> Task:
    """构造测试用 Task"""
    now = datetime.now(UTC)
    fields = {
        "task_id": task_id,
        "title": "Write report",
        "description": "Quarterly numbers",
        "priority": TaskPriority.MEDIUM,
        "status": TaskStatus.TODO,
        "creator_id": creator_id,
        "assignee_ids": assignee_ids if assignee_ids is not None else ["a1", "a2"],
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return Task(**fields)


async def _drain(broker: SqliteBroker, topic: str, group: str = "observer") -> list[dict]:
    """以独立 consumer group 读取并确认某 topic 上的全部消息，返回 payload 列表"""
    payloads: list[dict] = []
    while True:
        messages = await broker.claim(group, [topic], limit=100)
        if not messages:
            return payloads
        for message in messages:
            payloads.append(message.payload)
            await broker.ack(group, message.message_id)


@pytest.fixture
def make_task():
    """Task 工厂"""
    return _make_task


@pytest.fixture
def drain():
    """读取 topic 上全部消息的探针"""
    return _drain
