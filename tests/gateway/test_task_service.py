"""TaskService 测试

测试内容：
1. 创建：CREATED 历史 + 通知除创建者外的指派人
2. 更新：仅创建者；精确 diff；no-op 抑制；任意状态流转；指派人集合 diff
3. 发布失败被吸收，mutation 仍然成功
4. 并发更新 last-write-wins；并发事务中一个回滚不影响另一个
5. 删除级联且不发布事件；写入前任务已被删除 -> NotFound
6. 评论：参与者可评论，通知其余参与者
7. 可见性
"""

import asyncio

import pytest
from taskflow.broker import EventPublisher
from taskflow.core.exceptions import ForbiddenError, NotFoundError
from taskflow.core.models import HistoryAction, TaskCreate, TaskPatch, TaskStatus, Topic
from taskflow.gateway.services.task_service import SYSTEM_ACTOR, TaskService


class UnreachableBroker:
    async def publish(self, topic, payload):
        raise ConnectionError("broker unreachable")


@pytest.fixture
def service(store_group, publisher) -> TaskService:
    return TaskService(store_group, publisher)


async def _create(service: TaskService, assignees=("a1", "a2"), creator="owner"):
    return await service.create_task(
        TaskCreate(title="Write report", assignee_ids=list(assignees)),
        creator_id=creator,
    )


class TestCreateTask:
    async def test_create_records_history_and_notifies_assignees(self, service, broker, drain):
        task = await _create(service, assignees=("a1", "owner", "a2"))

        assert task.creator_id == "owner"
        assert task.assignee_ids == ["a1", "owner", "a2"]

        history = await service.get_history(task.task_id, "owner")
        assert [e.action for e in history] == [HistoryAction.CREATED]
        assert history[0].user_id == "owner"
        assert history[0].changes["task"]["title"] == "Write report"

        events = await drain(broker, Topic.TASK_CREATED)
        assert sorted(e["userId"] for e in events) == ["a1", "a2"]
        assert all(e["type"] == "TASK_ASSIGNED" for e in events)
        assert events[0]["metadata"] == {"creatorId": "owner"}
        assert events[0]["sourceVersion"] == history[0].entry_id

    async def test_create_without_assignees_publishes_nothing(self, service, broker, drain):
        await _create(service, assignees=())
        assert await drain(broker, Topic.TASK_CREATED) == []


class TestUpdateTask:
    async def test_assignee_cannot_update(self, service, broker, drain):
        """指派人更新被拒绝：无历史、无事件"""
        task = await _create(service)
        await drain(broker, Topic.TASK_CREATED)

        with pytest.raises(ForbiddenError):
            await service.update_task(task.task_id, TaskPatch(status=TaskStatus.DONE), "a1")

        history = await service.get_history(task.task_id, "owner")
        assert len(history) == 1
        assert (await service.get_task(task.task_id, "owner")).status == TaskStatus.TODO
        assert await drain(broker, Topic.TASK_UPDATED) == []

    async def test_missing_task_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.update_task("missing", TaskPatch(title="x"), "owner")

    async def test_exact_diff_and_recipients(self, service, broker, drain):
        task = await _create(service)

        updated = await service.update_task(
            task.task_id,
            TaskPatch(status=TaskStatus.IN_PROGRESS, title="Write report"),
            "owner",
        )

        assert updated.status == TaskStatus.IN_PROGRESS
        history = await service.get_history(task.task_id, "owner")
        assert history[0].action == HistoryAction.UPDATED
        assert history[0].changes == {"status": {"old": "TODO", "new": "IN_PROGRESS"}}

        events = await drain(broker, Topic.TASK_UPDATED)
        assert sorted(e["userId"] for e in events) == ["a1", "a2"]
        assert events[0]["type"] == "TASK_STATUS_CHANGED"
        assert events[0]["metadata"]["updatedBy"] == "owner"
        assert events[0]["metadata"]["changes"] == history[0].changes

    async def test_noop_update_suppressed(self, service, broker, drain):
        """无变更：不写历史、不发布事件、updated_at 不变"""
        task = await _create(service)

        result = await service.update_task(
            task.task_id,
            TaskPatch.model_validate({"title": "Write report", "assigneeIds": ["a2", "a1"]}),
            "owner",
        )

        assert result.updated_at == task.updated_at
        assert len(await service.get_history(task.task_id, "owner")) == 1
        assert await drain(broker, Topic.TASK_UPDATED) == []

    async def test_any_status_transition_allowed(self, service):
        task = await _create(service)
        await service.update_task(task.task_id, TaskPatch(status=TaskStatus.DONE), "owner")

        back = await service.update_task(task.task_id, TaskPatch(status=TaskStatus.TODO), "owner")

        assert back.status == TaskStatus.TODO

    async def test_assignee_change_notifies_new_set(self, service, broker, drain):
        task = await _create(service, assignees=("a1",))

        updated = await service.update_task(
            task.task_id,
            TaskPatch.model_validate({"assigneeIds": ["a2", "a3"]}),
            "owner",
        )

        assert sorted(updated.assignee_ids) == ["a2", "a3"]
        history = await service.get_history(task.task_id, "owner")
        assert history[0].changes == {"assignees": {"old": ["a1"], "new": ["a2", "a3"]}}
        events = await drain(broker, Topic.TASK_UPDATED)
        assert sorted(e["userId"] for e in events) == ["a2", "a3"]

    async def test_internal_update_recorded_as_system(self, service, broker, drain):
        """actor 为 None 时历史记为 system，并通知全部参与者"""
        task = await _create(service, assignees=("a1",))

        await service.update_task(task.task_id, TaskPatch(status=TaskStatus.REVIEW), None)

        history = await service.get_history(task.task_id, None)
        assert history[0].user_id == SYSTEM_ACTOR
        events = await drain(broker, Topic.TASK_UPDATED)
        assert sorted(e["userId"] for e in events) == ["a1", "owner"]

    async def test_publish_failure_absorbed(self, store_group, broker_config):
        """broker 不可达时 mutation 仍然提交成功"""
        service = TaskService(store_group, EventPublisher(UnreachableBroker(), broker_config))
        task = await _create(service)

        updated = await service.update_task(
            task.task_id, TaskPatch(status=TaskStatus.DONE), "owner"
        )

        assert updated.status == TaskStatus.DONE
        assert len(await service.get_history(task.task_id, "owner")) == 2

    async def test_concurrent_updates_last_write_wins(self, service):
        task = await _create(service)

        await asyncio.gather(
            service.update_task(task.task_id, TaskPatch(status=TaskStatus.IN_PROGRESS), "owner"),
            service.update_task(task.task_id, TaskPatch(status=TaskStatus.DONE), "owner"),
        )

        final = await service.get_task(task.task_id, "owner")
        assert final.status in (TaskStatus.IN_PROGRESS, TaskStatus.DONE)
        history = await service.get_history(task.task_id, "owner")
        assert [e.action for e in history].count(HistoryAction.UPDATED) == 2
        # 最新的历史条目描述最终状态
        assert history[0].changes["status"]["new"] == final.status.value

    async def test_failed_update_does_not_undo_concurrent_update(
        self, service, store_group, monkeypatch
    ):
        """并发的两个更新中一个失败回滚，另一个的变更与历史同时保留"""
        first = await _create(service)
        second = await _create(service)
        append_entry = store_group.history_store.append_entry

        async def flaky_append(entry):
            if entry.task_id == second.task_id:
                await asyncio.sleep(0)
                raise RuntimeError("disk full")
            await append_entry(entry)

        monkeypatch.setattr(store_group.history_store, "append_entry", flaky_append)

        results = await asyncio.gather(
            service.update_task(first.task_id, TaskPatch(status=TaskStatus.DONE), "owner"),
            service.update_task(second.task_id, TaskPatch(status=TaskStatus.DONE), "owner"),
            return_exceptions=True,
        )

        assert results[0].status == TaskStatus.DONE
        assert isinstance(results[1], RuntimeError)

        stored_first = await store_group.task_store.get_task(first.task_id)
        assert stored_first.status == TaskStatus.DONE
        first_history = await store_group.history_store.list_entries(first.task_id)
        assert first_history[0].changes["status"] == {"old": "TODO", "new": "DONE"}

        stored_second = await store_group.task_store.get_task(second.task_id)
        assert stored_second.status == TaskStatus.TODO
        assert await store_group.history_store.count_entries(second.task_id) == 1

    async def test_task_deleted_before_write_not_found(self, service, store_group, monkeypatch):
        """加载之后、写入之前任务被删除：返回 NotFound 而不是外键错误"""
        task = await _create(service)
        update_task = store_group.task_store.update_task

        async def delete_then_update(snapshot):
            await store_group.conn.execute(
                "DELETE FROM tasks WHERE task_id = ?", (snapshot.task_id,)
            )
            await store_group.conn.commit()
            return await update_task(snapshot)

        monkeypatch.setattr(store_group.task_store, "update_task", delete_then_update)

        with pytest.raises(NotFoundError) as exc_info:
            await service.update_task(task.task_id, TaskPatch(status=TaskStatus.DONE), "owner")

        assert exc_info.value.code == "TASK_NOT_FOUND"
        assert await store_group.history_store.count_entries(task.task_id) == 0


class TestDeleteTask:
    async def test_only_creator_can_delete(self, service):
        task = await _create(service)
        with pytest.raises(ForbiddenError):
            await service.delete_task(task.task_id, "a1")

    async def test_delete_cascades_without_events(self, service, store_group, broker, drain):
        task = await _create(service)
        await service.add_comment(task.task_id, "hello", "a1")
        await drain(broker, Topic.TASK_CREATED)
        await drain(broker, Topic.COMMENT_CREATED)

        await service.delete_task(task.task_id, "owner")

        with pytest.raises(NotFoundError):
            await service.get_task(task.task_id, "owner")
        assert await store_group.history_store.count_entries(task.task_id) == 0
        _, comment_total = await store_group.comment_store.list_comments(task.task_id)
        assert comment_total == 0
        for topic in (Topic.TASK_CREATED, Topic.TASK_UPDATED, Topic.COMMENT_CREATED):
            assert await drain(broker, topic) == []


class TestComments:
    async def test_assignee_comment_notifies_others(self, service, broker, drain):
        task = await _create(service)

        comment = await service.add_comment(task.task_id, "On it", "a1")

        history = await service.get_history(task.task_id, "owner")
        assert history[0].action == HistoryAction.COMMENT_ADDED
        assert history[0].changes == {"commentId": comment.comment_id, "content": "On it"}

        events = await drain(broker, Topic.COMMENT_CREATED)
        assert sorted(e["userId"] for e in events) == ["a2", "owner"]
        assert all(e["commentId"] == comment.comment_id for e in events)
        assert all(e["type"] == "NEW_COMMENT" for e in events)

    async def test_stranger_cannot_comment(self, service):
        task = await _create(service)
        with pytest.raises(ForbiddenError):
            await service.add_comment(task.task_id, "hi", "stranger")
        assert len(await service.get_history(task.task_id, "owner")) == 1

    async def test_comment_on_task_deleted_before_write(
        self, service, store_group, broker, drain, monkeypatch
    ):
        task = await _create(service)
        await drain(broker, Topic.TASK_CREATED)
        create_comment = store_group.comment_store.create_comment

        async def delete_then_create(comment):
            await store_group.conn.execute(
                "DELETE FROM tasks WHERE task_id = ?", (comment.task_id,)
            )
            await store_group.conn.commit()
            await create_comment(comment)

        monkeypatch.setattr(store_group.comment_store, "create_comment", delete_then_create)

        with pytest.raises(NotFoundError) as exc_info:
            await service.add_comment(task.task_id, "too late", "a1")

        assert exc_info.value.code == "TASK_NOT_FOUND"
        assert await drain(broker, Topic.COMMENT_CREATED) == []

    async def test_list_comments_newest_first(self, service):
        task = await _create(service)
        await service.add_comment(task.task_id, "first", "owner")
        await service.add_comment(task.task_id, "second", "a1")

        page = await service.list_comments(task.task_id, "a2")

        assert page.meta.total == 2
        assert {c.content for c in page.data} == {"first", "second"}


class TestVisibility:
    async def test_list_only_participating_tasks(self, service):
        await _create(service, assignees=("a1",), creator="owner")
        await _create(service, assignees=("a2",), creator="other")

        mine = await service.list_tasks("a1")
        theirs = await service.list_tasks("a2")
        nobody = await service.list_tasks("stranger")

        assert mine.meta.total == 1
        assert theirs.meta.total == 1
        assert nobody.meta.total == 0

    async def test_stranger_cannot_read(self, service):
        task = await _create(service)
        with pytest.raises(ForbiddenError):
            await service.get_task(task.task_id, "stranger")
        with pytest.raises(ForbiddenError):
            await service.get_history(task.task_id, "stranger")
