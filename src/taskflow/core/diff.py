"""Diff Engine -- 计算两个任务快照之间的字段级变更集

比较使用值相等（datetime 按时刻、枚举按取值），不是引用相等。
输出的 old/new 已转换为 JSON 可序列化值，可直接写入审计历史与事件 metadata。
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic_core import to_jsonable_python

from .models.task import Task, TaskPatch

ChangeMap = dict[str, dict[str, Any]]

ASSIGNEES_KEY = "assignees"


def compute_changes(current: Task, patch: TaskPatch) -> ChangeMap:
    """对 patch 中显式出现的每个字段与当前值比较

    未出现在 patch 中的字段不参与比较；显式 None 视为"清空"，
    与非空旧值比较时产生变更。

    Returns:
        {field: {"old": ..., "new": ...}}，无变更时为空 dict
    """
    changes: ChangeMap = {}
    for field, new_value in sorted(patch.field_updates().items()):
        old_value = getattr(current, field)
        if old_value != new_value:
            changes[field] = {
                "old": to_jsonable_python(old_value),
                "new": to_jsonable_python(new_value),
            }
    return changes


def diff_assignees(old: Iterable[str], new: Iterable[str]) -> dict[str, list[str]] | None:
    """指派人集合比较（顺序无关）

    Returns:
        {"old": [...], "new": [...]}，集合相同时返回 None
    """
    old_ids = list(dict.fromkeys(old))
    new_ids = list(dict.fromkeys(new))
    if set(old_ids) == set(new_ids):
        return None
    return {"old": old_ids, "new": new_ids}


def apply_patch(current: Task, patch: TaskPatch, now: datetime) -> Task:
    """把 patch 应用到任务快照，返回新快照（creator_id 不可改写）"""
    update: dict[str, Any] = patch.field_updates()
    if patch.has_assignees:
        update["assignee_ids"] = patch.assignee_ids
    update["updated_at"] = now
    update.pop("creator_id", None)
    return current.model_copy(update=update)


def snapshot(task: Task) -> dict[str, Any]:
    """CREATED 历史条目使用的任务字段快照"""
    return task.model_dump(
        mode="json",
        include={"title", "description", "due_date", "priority", "status"},
    )
