"""TaskStore SQLite 实现

tasks + task_assignees 两张表。此处仅提供数据库操作，不自动提交事务，
由 transaction 模块或调用方管理事务边界。
"""

from datetime import UTC, datetime

import aiosqlite

from ..models.enums import TaskPriority, TaskStatus
from ..models.task import Task

_TASK_COLUMNS = (
    "task_id, title, description, due_date, priority, status, "
    "creator_id, created_at, updated_at"
)


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录（含指派人）"""
        await self._conn.execute(
            f"""
            INSERT INTO tasks ({_TASK_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.title,
                task.description,
                _dt(task.due_date),
                task.priority.value,
                task.status.value,
                task.creator_id,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )
        await self._insert_assignees(task.task_id, task.assignee_ids)

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务（含指派人）"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        assignees = await self.get_assignee_ids(task_id)
        return self._row_to_task(row, assignees)

    async def update_task(self, task: Task) -> int:
        """覆盖写入标量字段（last-write-wins，不做版本检查）

        creator_id 与 created_at 不在更新列中。

        Returns:
            受影响行数；0 表示任务已不存在
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET title = ?, description = ?, due_date = ?, priority = ?,
                status = ?, updated_at = ?
            WHERE task_id = ?
            """,
            (
                task.title,
                task.description,
                _dt(task.due_date),
                task.priority.value,
                task.status.value,
                task.updated_at.isoformat(),
                task.task_id,
            ),
        )
        return cursor.rowcount

    async def replace_assignees(self, task_id: str, user_ids: list[str]) -> None:
        """整体替换指派人集合（先全部删除再重新插入）"""
        await self._conn.execute(
            "DELETE FROM task_assignees WHERE task_id = ?",
            (task_id,),
        )
        await self._insert_assignees(task_id, user_ids)

    async def delete_task(self, task_id: str) -> bool:
        """删除任务；评论、审计历史、指派关系经外键级联删除

        Returns:
            True 如果确实删除了一行
        """
        cursor = await self._conn.execute(
            "DELETE FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        return cursor.rowcount > 0

    async def get_assignee_ids(self, task_id: str) -> list[str]:
        cursor = await self._conn.execute(
            "SELECT user_id FROM task_assignees WHERE task_id = ? ORDER BY rowid ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def list_tasks(
        self,
        participant_id: str | None = None,
        status: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Task], int]:
        """按谓词查询任务，按 created_at 倒序

        Args:
            participant_id: 只返回该用户作为创建者或指派人的任务
            status: 按状态筛选
            limit / offset: 分页

        Returns:
            (当前页任务, 满足条件的总数)
        """
        clauses: list[str] = []
        params: list[str] = []
        if participant_id is not None:
            clauses.append(
                "(creator_id = ? OR task_id IN "
                "(SELECT task_id FROM task_assignees WHERE user_id = ?))"
            )
            params.extend([participant_id, participant_id])
        if status:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM tasks {where}",
            params,
        )
        count_row = await cursor.fetchone()
        total = count_row[0] if count_row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_TASK_COLUMNS} FROM tasks {where}
            ORDER BY created_at DESC, task_id DESC
            LIMIT ? OFFSET ?
            """,
            [*params, limit, offset],
        )
        rows = await cursor.fetchall()
        tasks = [
            self._row_to_task(row, await self.get_assignee_ids(row[0]))
            for row in rows
        ]
        return tasks, total

    async def _insert_assignees(self, task_id: str, user_ids: list[str]) -> None:
        if not user_ids:
            return
        assigned_at = datetime.now(UTC).isoformat()
        await self._conn.executemany(
            """
            INSERT OR IGNORE INTO task_assignees (task_id, user_id, assigned_at)
            VALUES (?, ?, ?)
            """,
            [(task_id, user_id, assigned_at) for user_id in user_ids],
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row, assignee_ids: list[str]) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            title=row[1],
            description=row[2],
            due_date=datetime.fromisoformat(row[3]) if row[3] else None,
            priority=TaskPriority(row[4]),
            status=TaskStatus(row[5]),
            creator_id=row[6],
            assignee_ids=assignee_ids,
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]),
        )
