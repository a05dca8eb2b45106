"""Store Protocol 接口定义

定义 TaskStore、CommentStore、HistoryStore、NotificationStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

import asyncio
from typing import Protocol

import aiosqlite

from ..models.comment import Comment
from ..models.history import TaskHistoryEntry
from ..models.notification import Notification
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> None:
        """创建任务记录（含指派人）"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def update_task(self, task: Task) -> int:
        """覆盖写入任务标量字段，返回受影响行数"""
        ...

    async def replace_assignees(self, task_id: str, user_ids: list[str]) -> None:
        """整体替换指派人集合"""
        ...

    async def delete_task(self, task_id: str) -> bool:
        """删除任务（级联删除评论/历史/指派关系）"""
        ...

    async def get_assignee_ids(self, task_id: str) -> list[str]:
        ...

    async def list_tasks(
        self,
        participant_id: str | None = None,
        status: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Task], int]:
        """按谓词查询任务"""
        ...


class CommentStore(Protocol):
    """Comment 存储接口"""

    async def create_comment(self, comment: Comment) -> None:
        ...

    async def get_comment(self, comment_id: str) -> Comment | None:
        ...

    async def list_comments(
        self,
        task_id: str,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Comment], int]:
        ...


class HistoryStore(Protocol):
    """审计历史存储接口

    append-only：只允许插入，不允许更新或单独删除。
    """

    async def append_entry(self, entry: TaskHistoryEntry) -> None:
        """追加历史条目"""
        ...

    async def list_entries(self, task_id: str) -> list[TaskHistoryEntry]:
        """查询任务历史，最新在前"""
        ...

    async def count_entries(self, task_id: str) -> int:
        ...


class NotificationStore(Protocol):
    """Notification 存储接口

    连接独立于 Task Store，写事务经 write_lock 串行化。
    """

    @property
    def conn(self) -> aiosqlite.Connection:
        ...

    @property
    def write_lock(self) -> asyncio.Lock:
        ...

    async def insert_if_absent(self, notification: Notification) -> tuple[Notification, bool]:
        """按 dedup_key 幂等插入"""
        ...

    async def get_notification(self, notification_id: str) -> Notification | None:
        ...

    async def get_by_dedup_key(self, dedup_key: str) -> Notification | None:
        ...

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        ...

    async def count_unread(self, user_id: str) -> int:
        ...

    async def mark_read(self, notification_id: str) -> bool:
        ...

    async def mark_all_read(self, user_id: str) -> int:
        ...

    async def delete_notification(self, notification_id: str) -> bool:
        ...
