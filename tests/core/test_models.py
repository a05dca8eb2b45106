"""领域模型单元测试

测试内容：
1. Task / TaskCreate 指派人去重
2. TaskPatch 部分更新语义（未设置 vs 显式清空）
3. Notification / NotificationEvent 线上格式（camelCase）
4. Page 分页元信息
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError
from taskflow.core.models import (
    Notification,
    NotificationEvent,
    NotificationType,
    Page,
    TaskCreate,
    TaskPatch,
    TaskPriority,
    TaskStatus,
)


class TestTaskModels:
    def test_assignees_deduplicated_preserving_order(self, make_task):
        """重复指派人去重，保留首次出现顺序"""
        task = make_task(assignee_ids=["b", "a", "b", "c", "a"])
        assert task.assignee_ids == ["b", "a", "c"]

    def test_participants(self, make_task):
        task = make_task(creator_id="owner", assignee_ids=["a1", "owner"])
        assert task.participants() == {"owner", "a1"}

    def test_create_defaults(self):
        """创建输入默认 MEDIUM / TODO / 无指派人"""
        data = TaskCreate(title="Ship it")
        assert data.priority == TaskPriority.MEDIUM
        assert data.status == TaskStatus.TODO
        assert data.assignee_ids == []

    def test_create_accepts_camel_case(self):
        data = TaskCreate.model_validate(
            {"title": "Ship it", "assigneeIds": ["u1", "u1"], "dueDate": "2026-01-01T00:00:00Z"}
        )
        assert data.assignee_ids == ["u1"]
        assert data.due_date == datetime(2026, 1, 1, tzinfo=UTC)

    def test_create_rejects_empty_title(self):
        with pytest.raises(ValidationError):
            TaskCreate(title="")

    def test_create_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            TaskCreate.model_validate({"title": "x", "status": "ARCHIVED"})


class TestTaskPatch:
    def test_unset_fields_not_in_updates(self):
        """未设置的字段不参与更新"""
        patch = TaskPatch(status=TaskStatus.DONE)
        assert patch.field_updates() == {"status": TaskStatus.DONE}
        assert patch.has_assignees is False

    def test_explicit_none_clears_description(self):
        """显式 None 表示清空"""
        patch = TaskPatch.model_validate({"description": None})
        assert patch.field_updates() == {"description": None}

    def test_title_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            TaskPatch.model_validate({"title": None})

    def test_status_cannot_be_cleared(self):
        with pytest.raises(ValidationError):
            TaskPatch.model_validate({"status": None})

    def test_assignees_null_rejected(self):
        """清空指派人需要传 []，不接受 null"""
        with pytest.raises(ValidationError):
            TaskPatch.model_validate({"assigneeIds": None})

    def test_assignees_tracked_separately(self):
        patch = TaskPatch.model_validate({"assigneeIds": ["x", "x", "y"], "title": "New"})
        assert patch.has_assignees is True
        assert patch.assignee_ids == ["x", "y"]
        assert "assignee_ids" not in patch.field_updates()


class TestNotificationModels:
    def test_event_wire_format_camel_case(self):
        event = NotificationEvent(
            user_id="u1",
            type=NotificationType.NEW_COMMENT,
            title="New Comment",
            message="hello",
            task_id="t1",
            comment_id="c1",
            source_version="v1",
        )
        wire = event.to_wire()
        assert wire["userId"] == "u1"
        assert wire["taskId"] == "t1"
        assert wire["commentId"] == "c1"
        assert wire["type"] == "NEW_COMMENT"
        assert NotificationEvent.model_validate(wire) == event

    def test_notification_wire_hides_dedup_key(self):
        """dedup_key 为内部字段，不出现在线上格式中"""
        notification = Notification(
            notification_id="n1",
            user_id="u1",
            type=NotificationType.TASK_ASSIGNED,
            title="t",
            message="m",
            created_at=datetime.now(UTC),
            dedup_key="secret",
        )
        wire = notification.to_wire()
        assert wire["id"] == "n1"
        assert "dedupKey" not in wire
        assert wire["read"] is False

    def test_notification_parses_wire_id(self):
        notification = Notification.model_validate(
            {
                "id": "n2",
                "userId": "u2",
                "type": "TASK_STATUS_CHANGED",
                "title": "t",
                "message": "m",
                "createdAt": "2026-01-01T00:00:00+00:00",
            }
        )
        assert notification.notification_id == "n2"
        assert notification.user_id == "u2"


class TestPage:
    def test_total_pages_rounds_up(self):
        page = Page.build(["a", "b"], page=1, size=2, total=5)
        wire = page.to_wire()
        assert wire["meta"] == {"page": 1, "size": 2, "total": 5, "totalPages": 3}

    def test_empty_page(self):
        page = Page.build([], page=1, size=10, total=0)
        assert page.meta.total_pages == 0
