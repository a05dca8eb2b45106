"""gateway 测试配置 -- 临时三库 + FastAPI app + httpx AsyncClient"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

USERS = [
    {"id": "owner", "displayName": "Olivia Owner", "email": "olivia@example.com"},
    {"id": "a1", "displayName": "Ann Assignee", "email": "ann@example.com"},
    {"id": "a2", "displayName": "Abe Assignee", "email": "abe@example.com"},
]

TOKENS = "tok-owner:owner,tok-a1:a1,tok-a2:a2"


@pytest.fixture
def gateway_env(tmp_path: Path, monkeypatch) -> Path:
    """三个独立数据库 + 静态身份与令牌"""
    sqlite_dir = tmp_path / "sqlite"
    monkeypatch.setenv("TASKFLOW_TASKS_DB_PATH", str(sqlite_dir / "tasks.db"))
    monkeypatch.setenv("TASKFLOW_NOTIFICATIONS_DB_PATH", str(sqlite_dir / "notifications.db"))
    monkeypatch.setenv("TASKFLOW_BROKER_DB_PATH", str(sqlite_dir / "broker.db"))
    monkeypatch.setenv("TASKFLOW_BROKER_POLL_INTERVAL_S", "0.02")
    monkeypatch.setenv("TASKFLOW_BROKER_RETRY_BACKOFF_S", "0")
    monkeypatch.setenv("TASKFLOW_IDENTITY_MODE", "static")
    monkeypatch.setenv("TASKFLOW_IDENTITY_USERS", json.dumps(USERS))
    monkeypatch.setenv("TASKFLOW_STATIC_TOKENS", TOKENS)
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    return tmp_path


@pytest_asyncio.fixture
async def app(gateway_env: Path):
    """已初始化 app.state 的 FastAPI 应用（consumer 不在后台运行，由测试手动驱动）"""
    from taskflow.gateway.main import create_app, init_app_state, shutdown_app_state

    application = create_app()
    await init_app_state(application, start_consumers=False)
    yield application
    await shutdown_app_state(application)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def run_pipeline(app):
    """手动驱动 Notification Consumer 与 Delivery Gateway，直到没有待处理消息"""

    async def _run() -> None:
        while True:
            processed = await app.state.notification_worker.run_once()
            processed += await app.state.delivery_worker.run_once()
            if processed == 0:
                return

    return _run