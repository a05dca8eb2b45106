"""枚举定义

包含 TaskStatus、TaskPriority、HistoryAction、NotificationType、TaskOperation 枚举，
以及 mutation 事件 topic 名称。

注意：TaskStatus 不维护合法流转表，任意状态之间均可切换。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """任务状态（隐式流程 TODO -> IN_PROGRESS -> REVIEW -> DONE，不强制）"""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class HistoryAction(StrEnum):
    """审计历史动作标签"""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    COMMENT_ADDED = "COMMENT_ADDED"


class NotificationType(StrEnum):
    """通知类型"""

    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    NEW_COMMENT = "NEW_COMMENT"


class TaskOperation(StrEnum):
    """访问策略评估的操作类型"""

    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    COMMENT = "COMMENT"


class Topic(StrEnum):
    """broker topic 名称"""

    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    COMMENT_CREATED = "comment.created"
    NOTIFICATION_SEND = "notification.send"


# Notification Consumer 订阅的 mutation 事件 topic
MUTATION_TOPICS: tuple[Topic, ...] = (
    Topic.TASK_CREATED,
    Topic.TASK_UPDATED,
    Topic.COMMENT_CREATED,
)
