"""TaskService -- 任务变更编排

每个 mutation 依次执行：
1. 加载当前任务，评估访问策略（NotFound / Forbidden）
2. 计算字段级 diff
3. 在同一事务内写入变更与审计历史（任务在步骤 1 之后被删除时抛 NotFound）
4. 向除操作者外的相关用户发布 mutation 事件（发布失败只记录日志）

无变更的更新（no-op）不写库、不追加历史、不发布事件。
同一任务的并发更新按 last-write-wins 处理，不做版本检查。
"""

from datetime import UTC, datetime

import structlog
from taskflow.broker.publisher import EventPublisher
from taskflow.core.config import DEFAULT_PAGE_SIZE
from taskflow.core.diff import ASSIGNEES_KEY, apply_patch, compute_changes, diff_assignees, snapshot
from taskflow.core.models import (
    Comment,
    HistoryAction,
    NotificationEvent,
    NotificationType,
    Page,
    Task,
    TaskCreate,
    TaskHistoryEntry,
    TaskOperation,
    TaskPatch,
    Topic,
)
from taskflow.core.policy import check_access
from taskflow.core.store import StoreGroup
from taskflow.core.store.transaction import (
    create_comment_with_history,
    create_task_with_history,
    delete_task,
    update_task_with_history,
)
from ulid import ULID

log = structlog.get_logger()

# actor 为 None（内部调用）时写入审计历史的操作者标识
SYSTEM_ACTOR = "system"


def _recipients(task: Task, actor_id: str | None) -> list[str]:
    """当前指派人 ∪ 创建者，排除操作者本人（保持稳定顺序）"""
    ordered = dict.fromkeys([*task.assignee_ids, task.creator_id])
    return [uid for uid in ordered if uid != actor_id]


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup, publisher: EventPublisher) -> None:
        self._stores = store_group
        self._publisher = publisher

    # ---- 查询 ----

    async def get_task(self, task_id: str, actor_id: str | None = None) -> Task:
        """查询任务（READ 策略）

        Raises:
            NotFoundError / ForbiddenError
        """
        task = await self._stores.task_store.get_task(task_id)
        return check_access(task, actor_id, TaskOperation.READ, task_id)

    async def list_tasks(
        self,
        actor_id: str | None,
        page: int = 1,
        size: int = DEFAULT_PAGE_SIZE,
        status: str | None = None,
    ) -> Page[Task]:
        """列出 actor 可见的任务（创建者或指派人），按创建时间倒序"""
        tasks, total = await self._stores.task_store.list_tasks(
            participant_id=actor_id,
            status=status,
            limit=size,
            offset=(page - 1) * size,
        )
        return Page.build(tasks, page=page, size=size, total=total)

    async def list_comments(
        self,
        task_id: str,
        actor_id: str | None = None,
        page: int = 1,
        size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[Comment]:
        await self.get_task(task_id, actor_id)
        comments, total = await self._stores.comment_store.list_comments(
            task_id,
            limit=size,
            offset=(page - 1) * size,
        )
        return Page.build(comments, page=page, size=size, total=total)

    async def get_history(
        self,
        task_id: str,
        actor_id: str | None = None,
    ) -> list[TaskHistoryEntry]:
        """审计历史，最新在前（READ 策略）"""
        await self.get_task(task_id, actor_id)
        return await self._stores.history_store.list_entries(task_id)

    # ---- 变更 ----

    async def create_task(self, data: TaskCreate, creator_id: str) -> Task:
        """创建任务：总是写入 CREATED 历史，并通知除创建者外的指派人"""
        now = datetime.now(UTC)
        task = Task(
            task_id=str(ULID()),
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            priority=data.priority,
            status=data.status,
            creator_id=creator_id,
            assignee_ids=data.assignee_ids,
            created_at=now,
            updated_at=now,
        )
        entry = TaskHistoryEntry(
            entry_id=str(ULID()),
            task_id=task.task_id,
            user_id=creator_id,
            action=HistoryAction.CREATED,
            changes={"task": snapshot(task)},
            created_at=now,
        )

        await create_task_with_history(self._stores, task, entry)
        log.info(
            "task_created",
            task_id=task.task_id,
            creator_id=creator_id,
            assignee_count=len(task.assignee_ids),
        )

        events = [
            NotificationEvent(
                user_id=user_id,
                type=NotificationType.TASK_ASSIGNED,
                title="New Task Assigned",
                message=f"You have been assigned to task: {task.title}",
                task_id=task.task_id,
                metadata={"creatorId": creator_id},
                source_version=entry.entry_id,
                occurred_at=now,
            )
            for user_id in task.assignee_ids
            if user_id != creator_id
        ]
        await self._emit(Topic.TASK_CREATED, events)

        return await self._reload(task.task_id)

    async def update_task(
        self,
        task_id: str,
        patch: TaskPatch,
        actor_id: str | None,
    ) -> Task:
        """部分更新任务（仅创建者）

        Returns:
            重新加载后的任务（含指派人）
        """
        current = await self._stores.task_store.get_task(task_id)
        current = check_access(current, actor_id, TaskOperation.UPDATE, task_id)

        changes = compute_changes(current, patch)
        if patch.has_assignees:
            assignee_change = diff_assignees(current.assignee_ids, patch.assignee_ids or [])
            if assignee_change is not None:
                changes[ASSIGNEES_KEY] = assignee_change

        if not changes:
            log.info("task_update_noop", task_id=task_id, actor_id=actor_id)
            return current

        now = datetime.now(UTC)
        updated = apply_patch(current, patch, now)
        entry = TaskHistoryEntry(
            entry_id=str(ULID()),
            task_id=task_id,
            user_id=actor_id or SYSTEM_ACTOR,
            action=HistoryAction.UPDATED,
            changes=changes,
            created_at=now,
        )

        await update_task_with_history(
            self._stores,
            updated,
            replace_assignees=ASSIGNEES_KEY in changes,
            entry=entry,
        )
        log.info(
            "task_updated",
            task_id=task_id,
            actor_id=actor_id,
            changed_fields=sorted(changes),
        )

        events = [
            NotificationEvent(
                user_id=user_id,
                type=NotificationType.TASK_STATUS_CHANGED,
                title="Task Updated",
                message=f'Task "{updated.title}" has been updated',
                task_id=task_id,
                metadata={"updatedBy": actor_id, "changes": changes},
                source_version=entry.entry_id,
                occurred_at=now,
            )
            for user_id in _recipients(updated, actor_id)
        ]
        await self._emit(Topic.TASK_UPDATED, events)

        return await self._reload(task_id)

    async def delete_task(self, task_id: str, actor_id: str | None) -> None:
        """删除任务（仅创建者）

        评论、审计历史、指派关系随任务级联删除；不发布事件，
        Notification Store 中引用该任务的通知保持不变。
        """
        task = await self._stores.task_store.get_task(task_id)
        check_access(task, actor_id, TaskOperation.DELETE, task_id)
        await delete_task(self._stores, task_id)
        log.info("task_deleted", task_id=task_id, actor_id=actor_id)

    async def add_comment(self, task_id: str, content: str, author_id: str) -> Comment:
        """发表评论（创建者或指派人），写入 COMMENT_ADDED 历史并通知其他参与者"""
        task = await self._stores.task_store.get_task(task_id)
        task = check_access(task, author_id, TaskOperation.COMMENT, task_id)

        now = datetime.now(UTC)
        comment = Comment(
            comment_id=str(ULID()),
            task_id=task_id,
            author_id=author_id,
            content=content,
            created_at=now,
            updated_at=now,
        )
        entry = TaskHistoryEntry(
            entry_id=str(ULID()),
            task_id=task_id,
            user_id=author_id,
            action=HistoryAction.COMMENT_ADDED,
            changes={"commentId": comment.comment_id, "content": content},
            created_at=now,
        )

        await create_comment_with_history(self._stores, comment, entry)
        log.info("comment_created", task_id=task_id, comment_id=comment.comment_id)

        events = [
            NotificationEvent(
                user_id=user_id,
                type=NotificationType.NEW_COMMENT,
                title="New Comment",
                message=f"New comment on task: {task.title}",
                task_id=task_id,
                comment_id=comment.comment_id,
                metadata={"authorId": author_id},
                source_version=comment.comment_id,
                occurred_at=now,
            )
            for user_id in _recipients(task, author_id)
        ]
        await self._emit(Topic.COMMENT_CREATED, events)

        return comment

    # ---- 内部 ----

    async def _emit(self, topic: Topic, events: list[NotificationEvent]) -> None:
        """每个接收者一条消息；发布失败由 EventPublisher 吸收"""
        if not events:
            return
        published = await self._publisher.publish_many(
            topic.value,
            [event.to_wire() for event in events],
        )
        if published < len(events):
            log.warning(
                "mutation_events_partially_published",
                topic=topic.value,
                published=published,
                expected=len(events),
            )

    async def _reload(self, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        return check_access(task, None, TaskOperation.READ, task_id)
