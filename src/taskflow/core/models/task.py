"""Task Domain Model

creator_id 创建后不可变；assignee_ids 去重（顺序无关，保留首次出现顺序便于展示）。
TaskPatch 采用部分更新语义：未设置的字段表示"不变"，显式 None 表示"清空"。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import TASK_TITLE_MAX_LENGTH
from .enums import TaskPriority, TaskStatus


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="任务描述")
    due_date: datetime | None = Field(default=None, description="截止时间")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="当前状态")
    creator_id: str = Field(description="创建者 ID，创建后不可变")
    assignee_ids: list[str] = Field(default_factory=list, description="指派用户 ID 集合")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @field_validator("assignee_ids")
    @classmethod
    def _unique_assignees(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    def participants(self) -> set[str]:
        """创建者 + 所有指派人"""
        return {self.creator_id, *self.assignee_ids}


class TaskCreate(BaseModel):
    """创建任务的输入（线上格式 camelCase）"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(min_length=1, max_length=TASK_TITLE_MAX_LENGTH)
    description: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    assignee_ids: list[str] = Field(default_factory=list)

    @field_validator("assignee_ids")
    @classmethod
    def _unique_assignees(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class TaskPatch(BaseModel):
    """部分更新输入

    只有显式设置的字段参与 diff 与写入（model_fields_set）。
    title / priority / status 不可清空。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = Field(default=None, min_length=1, max_length=TASK_TITLE_MAX_LENGTH)
    description: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    assignee_ids: list[str] | None = None

    @field_validator("title", "priority", "status")
    @classmethod
    def _not_clearable(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    @field_validator("assignee_ids")
    @classmethod
    def _unique_assignees(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            raise ValueError("assignee_ids cannot be null, send [] to clear")
        return _dedupe(value)

    def field_updates(self) -> dict[str, Any]:
        """返回显式设置的标量字段（不含 assignee_ids）"""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "assignee_ids"
        }

    @property
    def has_assignees(self) -> bool:
        return "assignee_ids" in self.model_fields_set
