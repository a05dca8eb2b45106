"""Mutation + 审计历史原子事务封装

在同一 SQLite 事务内提交任务变更与对应的 TaskHistoryEntry，
保证历史条目与其描述的变更总是一起持久化（或一起回滚）。

同一连接被所有请求共享：事务从第一条写语句到 commit/rollback 全程持有
连接的写锁，否则一个协程的 rollback 会连带丢弃另一个协程尚未提交的写入。
"""

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiosqlite

from ..exceptions import NotFoundError
from ..models.comment import Comment
from ..models.history import TaskHistoryEntry
from ..models.task import Task

if TYPE_CHECKING:
    from . import StoreGroup


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[None]:
    """持有写锁执行一个事务：正常退出提交，异常时回滚并重新抛出"""
    async with lock:
        try:
            yield
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise


def _task_not_found(task_id: str) -> NotFoundError:
    return NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")


async def create_task_with_history(
    stores: "StoreGroup",
    task: Task,
    entry: TaskHistoryEntry,
) -> None:
    """在同一事务内写入新任务（含指派人）和 CREATED 历史条目"""
    async with write_transaction(stores.conn, stores.write_lock):
        await stores.task_store.create_task(task)
        await stores.history_store.append_entry(entry)


async def update_task_with_history(
    stores: "StoreGroup",
    task: Task,
    replace_assignees: bool,
    entry: TaskHistoryEntry | None,
) -> None:
    """在同一事务内覆盖写入任务并（可选）追加 UPDATED 历史条目

    Args:
        task: 已应用 patch 的新快照
        replace_assignees: patch 中是否包含指派人集合
        entry: 历史条目；None 表示无变更，不追加历史

    Raises:
        NotFoundError: 任务在加载之后、写入之前已被删除
    """
    async with write_transaction(stores.conn, stores.write_lock):
        if await stores.task_store.update_task(task) == 0:
            raise _task_not_found(task.task_id)
        if replace_assignees:
            await stores.task_store.replace_assignees(task.task_id, task.assignee_ids)
        if entry is not None:
            await stores.history_store.append_entry(entry)


async def create_comment_with_history(
    stores: "StoreGroup",
    comment: Comment,
    entry: TaskHistoryEntry,
) -> None:
    """在同一事务内写入评论和 COMMENT_ADDED 历史条目

    Raises:
        NotFoundError: 评论所属任务已被删除（外键约束失败）
    """
    async with write_transaction(stores.conn, stores.write_lock):
        try:
            await stores.comment_store.create_comment(comment)
        except sqlite3.IntegrityError as e:
            if "FOREIGN KEY" not in str(e):
                raise
            raise _task_not_found(comment.task_id) from e
        await stores.history_store.append_entry(entry)


async def delete_task(stores: "StoreGroup", task_id: str) -> bool:
    """删除任务并提交；评论、历史、指派关系由外键级联删除"""
    async with write_transaction(stores.conn, stores.write_lock):
        return await stores.task_store.delete_task(task_id)
