"""BrokerConfig -- 持久化 broker 配置加载

从环境变量加载；非法数值记录 warning 并回退默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class BrokerConfig(BaseModel):
    """broker 配置

    环境变量:
        TASKFLOW_BROKER_PUBLISH_TIMEOUT_S: 单次发布超时（秒，默认 2.0）
        TASKFLOW_BROKER_PUBLISH_RETRIES: 发布最大尝试次数（默认 3）
        TASKFLOW_BROKER_LEASE_S: 消息领取后的可见性租约（秒，默认 30）
        TASKFLOW_BROKER_MAX_ATTEMPTS: 进入死信前的最大投递次数（默认 5）
        TASKFLOW_BROKER_POLL_INTERVAL_S: consumer 空闲轮询间隔（秒，默认 0.2）
        TASKFLOW_BROKER_RETRY_BACKOFF_S: nack 后重新可见的基础退避（秒，默认 0.5）
    """

    publish_timeout_s: float = Field(default=2.0, gt=0, description="单次发布超时（秒）")
    publish_retries: int = Field(default=3, ge=1, description="发布最大尝试次数")
    lease_s: float = Field(default=30.0, ge=0, description="领取租约（秒）")
    max_attempts: int = Field(default=5, ge=1, description="死信前最大投递次数")
    poll_interval_s: float = Field(default=0.2, gt=0, description="空闲轮询间隔（秒）")
    retry_backoff_s: float = Field(default=0.5, ge=0, description="nack 基础退避（秒）")


# 环境变量 -> (字段名, 类型)
_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "TASKFLOW_BROKER_PUBLISH_TIMEOUT_S": ("publish_timeout_s", float),
    "TASKFLOW_BROKER_PUBLISH_RETRIES": ("publish_retries", int),
    "TASKFLOW_BROKER_LEASE_S": ("lease_s", float),
    "TASKFLOW_BROKER_MAX_ATTEMPTS": ("max_attempts", int),
    "TASKFLOW_BROKER_POLL_INTERVAL_S": ("poll_interval_s", float),
    "TASKFLOW_BROKER_RETRY_BACKOFF_S": ("retry_backoff_s", float),
}


def load_broker_config() -> BrokerConfig:
    """从环境变量加载 broker 配置

    Returns:
        BrokerConfig 实例
    """
    kwargs: dict = {}
    defaults = BrokerConfig()

    for env_var, (field_name, cast) in _ENV_FIELDS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            parsed = cast(val)
            # 单字段校验，越界值同样回退
            BrokerConfig(**{field_name: parsed})
        except ValueError:
            log.warning(
                "invalid_broker_config",
                env_var=env_var,
                value=val,
                fallback=getattr(defaults, field_name),
            )
            continue
        kwargs[field_name] = parsed

    return BrokerConfig(**kwargs)
