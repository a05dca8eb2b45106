"""Taskflow Broker -- SQLite 持久化 at-least-once broker

公开接口导出。
"""

from .config import BrokerConfig, load_broker_config
from .consumer import BrokerConsumer, MessageHandler
from .exceptions import BrokerError, PoisonMessageError
from .publisher import EventPublisher
from .sqlite_broker import (
    BrokerMessage,
    DeadLetter,
    SqliteBroker,
    create_broker,
    init_broker_db,
)

__all__ = [
    "BrokerConfig",
    "load_broker_config",
    "BrokerConsumer",
    "MessageHandler",
    "BrokerError",
    "PoisonMessageError",
    "EventPublisher",
    "BrokerMessage",
    "DeadLetter",
    "SqliteBroker",
    "create_broker",
    "init_broker_db",
]
