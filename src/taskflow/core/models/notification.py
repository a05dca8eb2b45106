"""Notification 相关模型

- NotificationEvent: mutation 事件的线上 payload（不落库，不携带自身 ID）
- Notification: Notification Store 持久化记录

线上格式采用 camelCase 键（userId/taskId/commentId），Python 侧使用 snake_case。
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import NotificationType


class NotificationEvent(BaseModel):
    """mutation 事件 payload

    source_version 为产生该事件的提交版本（审计历史条目 ID 或评论 ID），
    consumer 以此派生幂等键；它不是事件自身的身份。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(description="接收者 ID")
    type: NotificationType = Field(description="通知类型")
    title: str
    message: str
    task_id: str | None = None
    comment_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_version: str = Field(default="", description="来源提交版本（单调递增）")
    occurred_at: datetime | None = Field(default=None, description="来源提交时间")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Notification(BaseModel):
    """持久化通知记录

    生命周期：consumer 收到事件时创建；仅允许翻转 read；由所属用户显式删除。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    notification_id: str = Field(
        validation_alias=AliasChoices("id", "notification_id", "notificationId"),
        serialization_alias="id",
        description="唯一标识，ULID 格式",
    )
    user_id: str
    type: NotificationType
    title: str
    message: str
    task_id: str | None = None
    comment_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: datetime
    dedup_key: str = Field(default="", exclude=True, description="幂等键（内部使用）")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
