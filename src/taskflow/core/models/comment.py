"""Comment Domain Model"""

from datetime import datetime

from pydantic import BaseModel, Field


class Comment(BaseModel):
    """任务评论"""

    comment_id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="所属任务 ID")
    author_id: str = Field(description="作者 ID")
    content: str = Field(description="评论内容")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class CommentCreate(BaseModel):
    """创建评论的输入"""

    content: str = Field(min_length=1)
