"""Taskflow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .comment import Comment, CommentCreate
from .enums import (
    MUTATION_TOPICS,
    HistoryAction,
    NotificationType,
    TaskOperation,
    TaskPriority,
    TaskStatus,
    Topic,
)
from .history import TaskHistoryEntry
from .notification import Notification, NotificationEvent
from .pagination import Page, PageMeta
from .task import Task, TaskCreate, TaskPatch

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "HistoryAction",
    "NotificationType",
    "TaskOperation",
    "Topic",
    "MUTATION_TOPICS",
    # Task
    "Task",
    "TaskCreate",
    "TaskPatch",
    # History
    "TaskHistoryEntry",
    # Comment
    "Comment",
    "CommentCreate",
    # Notification
    "Notification",
    "NotificationEvent",
    # 分页
    "Page",
    "PageMeta",
]
