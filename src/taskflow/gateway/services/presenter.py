"""响应装饰 -- 把不透明的 user_id 解析为可读身份

身份解析经 FallbackIdentityResolver，失败时为占位身份 "Unknown"，
不会让主操作失败。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from taskflow.core.models import Comment, Page, Task, TaskHistoryEntry
from taskflow.identity import FallbackIdentityResolver, UserIdentity


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskView(_WireModel):
    id: str
    title: str
    description: str | None
    due_date: datetime | None
    priority: str
    status: str
    creator_id: str
    assignee_ids: list[str]
    assignees: list[UserIdentity]
    created_at: datetime
    updated_at: datetime


class CommentView(_WireModel):
    id: str
    content: str
    task_id: str
    author_id: str
    author: UserIdentity
    created_at: datetime
    updated_at: datetime


class HistoryView(_WireModel):
    id: str
    task_id: str
    user_id: str
    user: UserIdentity
    action: str
    changes: dict[str, Any]
    created_at: datetime


class ResponsePresenter:
    """将领域模型转换为带身份信息的线上格式"""

    def __init__(self, identity: FallbackIdentityResolver) -> None:
        self._identity = identity

    async def _lookup(self, user_ids: list[str]) -> dict[str, UserIdentity]:
        users = await self._identity.resolve_many(user_ids)
        return {u.id: u for u in users}

    async def task(self, task: Task) -> dict[str, Any]:
        return (await self.tasks([task]))[0]

    async def tasks(self, tasks: list[Task]) -> list[dict[str, Any]]:
        users = await self._lookup([uid for t in tasks for uid in t.assignee_ids])
        return [
            TaskView(
                id=t.task_id,
                title=t.title,
                description=t.description,
                due_date=t.due_date,
                priority=t.priority.value,
                status=t.status.value,
                creator_id=t.creator_id,
                assignee_ids=t.assignee_ids,
                assignees=[users.get(uid) or UserIdentity.placeholder(uid) for uid in t.assignee_ids],
                created_at=t.created_at,
                updated_at=t.updated_at,
            ).to_wire()
            for t in tasks
        ]

    async def task_page(self, page: Page[Task]) -> dict[str, Any]:
        return {
            "data": await self.tasks(page.data),
            "meta": page.meta.model_dump(by_alias=True),
        }

    async def comment(self, comment: Comment) -> dict[str, Any]:
        return (await self.comments([comment]))[0]

    async def comments(self, comments: list[Comment]) -> list[dict[str, Any]]:
        users = await self._lookup([c.author_id for c in comments])
        return [
            CommentView(
                id=c.comment_id,
                content=c.content,
                task_id=c.task_id,
                author_id=c.author_id,
                author=users.get(c.author_id) or UserIdentity.placeholder(c.author_id),
                created_at=c.created_at,
                updated_at=c.updated_at,
            ).to_wire()
            for c in comments
        ]

    async def comment_page(self, page: Page[Comment]) -> dict[str, Any]:
        return {
            "data": await self.comments(page.data),
            "meta": page.meta.model_dump(by_alias=True),
        }

    async def history(self, entries: list[TaskHistoryEntry]) -> list[dict[str, Any]]:
        users = await self._lookup([e.user_id for e in entries])
        return [
            HistoryView(
                id=e.entry_id,
                task_id=e.task_id,
                user_id=e.user_id,
                user=users.get(e.user_id) or UserIdentity.placeholder(e.user_id),
                action=e.action.value,
                changes=e.changes,
                created_at=e.created_at,
            ).to_wire()
            for e in entries
        ]
