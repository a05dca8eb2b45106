"""Broker 异常体系"""


class BrokerError(Exception):
    """Broker 包基础异常"""


class PoisonMessageError(BrokerError):
    """消息无法被处理（payload 无法解析等），重试无意义

    consumer 收到此异常时直接将消息转入死信，不再重试。
    """

    def __init__(self, message_id: str, reason: str) -> None:
        """
        Args:
            message_id: 消息 ID
            reason: 无法处理的原因
        """
        super().__init__(f"无法处理的消息 {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason
