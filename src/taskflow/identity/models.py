"""UserIdentity 数据模型"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UNKNOWN = "Unknown"


class UserIdentity(BaseModel):
    """用于装饰 task/comment/history 响应的用户信息

    线上格式 {id, displayName, email}。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="用户 ID")
    display_name: str = Field(description="显示名称")
    email: str = Field(description="邮箱")

    @classmethod
    def placeholder(cls, user_id: str) -> "UserIdentity":
        """resolver 不可用或用户不存在时的占位身份"""
        return cls(id=user_id, display_name=UNKNOWN, email=UNKNOWN)
