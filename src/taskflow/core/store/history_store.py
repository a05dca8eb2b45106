"""HistoryStore SQLite 实现

审计历史表 append-only：只允许插入，不提供更新或单条删除。
entry_id 使用 ULID，时间有序。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import HistoryAction
from ..models.history import TaskHistoryEntry


class SqliteHistoryStore:
    """HistoryStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_entry(self, entry: TaskHistoryEntry) -> None:
        """追加审计历史条目（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO task_history (entry_id, task_id, user_id, action, changes, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.entry_id,
                entry.task_id,
                entry.user_id,
                entry.action.value,
                json.dumps(entry.changes, ensure_ascii=False),
                entry.created_at.isoformat(),
            ),
        )

    async def list_entries(self, task_id: str) -> list[TaskHistoryEntry]:
        """查询任务审计历史，最新在前"""
        cursor = await self._conn.execute(
            """
            SELECT entry_id, task_id, user_id, action, changes, created_at
            FROM task_history
            WHERE task_id = ?
            ORDER BY created_at DESC, entry_id DESC
            """,
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def count_entries(self, task_id: str) -> int:
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM task_history WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> TaskHistoryEntry:
        """将数据库行转换为 TaskHistoryEntry 模型"""
        return TaskHistoryEntry(
            entry_id=row[0],
            task_id=row[1],
            user_id=row[2],
            action=HistoryAction(row[3]),
            changes=json.loads(row[4]) if row[4] else {},
            created_at=datetime.fromisoformat(row[5]),
        )
