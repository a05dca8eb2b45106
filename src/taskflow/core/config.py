"""配置常量模块 -- 可通过环境变量覆盖

包含三个独立数据库（任务库、通知库、broker 库）路径、实时推送相关常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKFLOW_DATA_DIR", "data"))


def get_tasks_db_path() -> str:
    """获取 Task Store 的 SQLite 数据库路径"""
    return os.environ.get(
        "TASKFLOW_TASKS_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tasks.db"),
    )


def get_notifications_db_path() -> str:
    """获取 Notification Store 的 SQLite 数据库路径"""
    return os.environ.get(
        "TASKFLOW_NOTIFICATIONS_DB_PATH",
        str(_get_base_dir() / "sqlite" / "notifications.db"),
    )


def get_broker_db_path() -> str:
    """获取 broker 持久化队列的 SQLite 数据库路径"""
    return os.environ.get(
        "TASKFLOW_BROKER_DB_PATH",
        str(_get_base_dir() / "sqlite" / "broker.db"),
    )


def get_static_tokens() -> dict[str, str]:
    """解析 TASKFLOW_STATIC_TOKENS（格式 token:userId,token:userId）"""
    raw = os.environ.get("TASKFLOW_STATIC_TOKENS", "")
    tokens: dict[str, str] = {}
    for item in raw.split(","):
        token, sep, user_id = item.strip().partition(":")
        if sep and token and user_id:
            tokens[token] = user_id
    return tokens


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("TASKFLOW_SSE_HEARTBEAT_INTERVAL", "15")
)

# 连接认证后到允许 register 之间的宽限期（毫秒）
REGISTER_GRACE_MS: int = int(os.environ.get("TASKFLOW_REGISTER_GRACE_MS", "500"))

# 任务标题最大长度（history / 通知文案中引用）
TASK_TITLE_MAX_LENGTH: int = 255

# 默认分页大小
DEFAULT_PAGE_SIZE: int = 10
NOTIFICATION_PAGE_SIZE: int = 20
