"""IdentityConfig -- 身份解析配置加载

从环境变量加载；非法值记录 warning 并回退默认值，不阻塞启动。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .models import UserIdentity

log = structlog.get_logger()

_USERS_ADAPTER = TypeAdapter(list[UserIdentity])


class IdentityConfig(BaseModel):
    """Identity 配置

    环境变量:
        TASKFLOW_IDENTITY_MODE: 解析模式（http/static，默认 static）
        TASKFLOW_IDENTITY_URL: 身份服务地址（默认 http://localhost:3001）
        TASKFLOW_IDENTITY_TIMEOUT_S: 请求超时（秒，默认 5）
        TASKFLOW_IDENTITY_USERS: static 模式下的用户列表（JSON 数组）
    """

    mode: Literal["http", "static"] = Field(default="static", description="解析模式")
    base_url: str = Field(default="http://localhost:3001", description="身份服务基础 URL")
    timeout_s: float = Field(default=5.0, gt=0, description="请求超时（秒）")
    static_users: list[UserIdentity] = Field(
        default_factory=list,
        description="static 模式下的已知用户",
    )


def load_identity_config() -> IdentityConfig:
    """从环境变量加载 Identity 配置

    Returns:
        IdentityConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKFLOW_IDENTITY_MODE"):
        if val in ("http", "static"):
            kwargs["mode"] = val
        else:
            log.warning(
                "invalid_identity_config",
                env_var="TASKFLOW_IDENTITY_MODE",
                value=val,
                fallback="static",
            )

    if val := os.environ.get("TASKFLOW_IDENTITY_URL"):
        kwargs["base_url"] = val

    if val := os.environ.get("TASKFLOW_IDENTITY_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = float(val)
        except ValueError:
            log.warning(
                "invalid_identity_config",
                env_var="TASKFLOW_IDENTITY_TIMEOUT_S",
                value=val,
                fallback=5.0,
            )

    if val := os.environ.get("TASKFLOW_IDENTITY_USERS"):
        try:
            kwargs["static_users"] = _USERS_ADAPTER.validate_json(val)
        except ValidationError:
            log.warning(
                "invalid_identity_config",
                env_var="TASKFLOW_IDENTITY_USERS",
                fallback=[],
            )

    return IdentityConfig(**kwargs)
