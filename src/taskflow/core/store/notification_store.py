"""NotificationStore SQLite 实现

Notification Store 独占 notifications 表。
dedup_key 唯一约束保证 at-least-once 投递下的幂等写入（insert-if-absent）。
"""

import asyncio
import json
from datetime import datetime

import aiosqlite

from ..models.enums import NotificationType
from ..models.notification import Notification

_NOTIFICATION_COLUMNS = (
    "notification_id, user_id, type, title, message, task_id, comment_id, "
    "metadata, read, created_at, dedup_key"
)


class SqliteNotificationStore:
    """NotificationStore 的 SQLite 实现（不自动提交事务）

    write_lock 由调用方在一个写事务内持有，覆盖第一条写语句到 commit/rollback。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._write_lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        return self._conn

    @property
    def write_lock(self) -> asyncio.Lock:
        return self._write_lock

    async def insert_if_absent(self, notification: Notification) -> tuple[Notification, bool]:
        """按 dedup_key 幂等插入

        Returns:
            (已持久化的通知, created) -- created=False 表示幂等键命中，返回已存在记录
        """
        cursor = await self._conn.execute(
            f"""
            INSERT INTO notifications ({_NOTIFICATION_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(dedup_key) DO NOTHING
            """,
            (
                notification.notification_id,
                notification.user_id,
                notification.type.value,
                notification.title,
                notification.message,
                notification.task_id,
                notification.comment_id,
                json.dumps(notification.metadata, ensure_ascii=False, default=str),
                int(notification.read),
                notification.created_at.isoformat(),
                notification.dedup_key,
            ),
        )
        if cursor.rowcount > 0:
            return notification, True

        existing = await self.get_by_dedup_key(notification.dedup_key)
        if existing is None:
            # 冲突行在同一时刻被删除，按新建处理会破坏幂等，交由调用方重试
            raise RuntimeError(f"dedup conflict without row: {notification.dedup_key}")
        return existing, False

    async def get_notification(self, notification_id: str) -> Notification | None:
        cursor = await self._conn.execute(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications WHERE notification_id = ?",
            (notification_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_notification(row)

    async def get_by_dedup_key(self, dedup_key: str) -> Notification | None:
        cursor = await self._conn.execute(
            f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications WHERE dedup_key = ?",
            (dedup_key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_notification(row)

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        """查询用户通知，按 created_at 倒序分页"""
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ?",
            (user_id,),
        )
        count_row = await cursor.fetchone()
        total = count_row[0] if count_row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_NOTIFICATION_COLUMNS} FROM notifications
            WHERE user_id = ?
            ORDER BY created_at DESC, notification_id DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_notification(row) for row in rows], total

    async def count_unread(self, user_id: str) -> int:
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND read = 0",
            (user_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def mark_read(self, notification_id: str) -> bool:
        cursor = await self._conn.execute(
            "UPDATE notifications SET read = 1 WHERE notification_id = ?",
            (notification_id,),
        )
        return cursor.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        """将用户所有未读通知置为已读

        Returns:
            受影响行数
        """
        cursor = await self._conn.execute(
            "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0",
            (user_id,),
        )
        return cursor.rowcount

    async def delete_notification(self, notification_id: str) -> bool:
        cursor = await self._conn.execute(
            "DELETE FROM notifications WHERE notification_id = ?",
            (notification_id,),
        )
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_notification(row: aiosqlite.Row) -> Notification:
        """将数据库行转换为 Notification 模型"""
        return Notification(
            notification_id=row[0],
            user_id=row[1],
            type=NotificationType(row[2]),
            title=row[3],
            message=row[4],
            task_id=row[5],
            comment_id=row[6],
            metadata=json.loads(row[7]) if row[7] else {},
            read=bool(row[8]),
            created_at=datetime.fromisoformat(row[9]),
            dedup_key=row[10],
        )
