"""TaskHistoryEntry Domain Model

审计历史 append-only：创建后不允许修改、重排或单独删除，
仅随所属任务级联删除。
changes 为 字段名 -> {"old": ..., "new": ...} 映射，
非字段类动作（如 COMMENT_ADDED）携带领域 payload。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import HistoryAction


class TaskHistoryEntry(BaseModel):
    """审计历史条目"""

    entry_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: str = Field(description="所属任务 ID")
    user_id: str = Field(description="操作者 ID")
    action: HistoryAction = Field(description="动作标签")
    changes: dict[str, Any] = Field(default_factory=dict, description="变更映射或动作 payload")
    created_at: datetime = Field(description="创建时间")
