"""Taskflow Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
Task Store（任务/评论/审计历史）与 Notification Store 使用各自独立的数据库文件。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .comment_store import SqliteCommentStore
from .history_store import SqliteHistoryStore
from .notification_store import SqliteNotificationStore
from .protocols import CommentStore, HistoryStore, NotificationStore, TaskStore
from .sqlite_init import init_notifications_db, init_tasks_db
from .task_store import SqliteTaskStore
from .transaction import (
    create_comment_with_history,
    create_task_with_history,
    delete_task,
    update_task_with_history,
    write_transaction,
)


class StoreGroup:
    """Task Store 实例组 -- 共享同一个数据库连接

    write_lock 串行化该连接上的写事务，见 transaction.write_transaction。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.task_store: TaskStore = SqliteTaskStore(conn)
        self.comment_store: CommentStore = SqliteCommentStore(conn)
        self.history_store: HistoryStore = SqliteHistoryStore(conn)


async def _connect(db_path: str) -> aiosqlite.Connection:
    # 确保数据库目录存在
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    return conn


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Task Store 实例组

    Args:
        db_path: 任务库 SQLite 文件路径

    Returns:
        StoreGroup 实例
    """
    conn = await _connect(db_path)
    await init_tasks_db(conn)
    return StoreGroup(conn=conn)


async def create_notification_store(db_path: str) -> SqliteNotificationStore:
    """创建 Notification Store（独立数据库连接）"""
    conn = await _connect(db_path)
    await init_notifications_db(conn)
    return SqliteNotificationStore(conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "create_notification_store",
    "SqliteTaskStore",
    "SqliteCommentStore",
    "SqliteHistoryStore",
    "SqliteNotificationStore",
    "TaskStore",
    "CommentStore",
    "HistoryStore",
    "NotificationStore",
    "init_tasks_db",
    "init_notifications_db",
    "create_task_with_history",
    "update_task_with_history",
    "create_comment_with_history",
    "delete_task",
    "write_transaction",
]
