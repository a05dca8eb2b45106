"""Taskflow 异常体系

- NotFoundError / ForbiddenError：由核心产生，必须带结构化 code 交给调用方映射 404/403
- ValidationFailure：仅在边缘层产生
- DeliveryFailure：broker 不可达或发布超时，在核心内部吸收，不向 mutation 调用方暴露
"""


class TaskflowError(Exception):
    """Taskflow 基础异常"""

    code: str = "TASKFLOW_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        """
        Args:
            message: 错误描述
            code: 结构化错误码（用于边缘层映射）
        """
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(TaskflowError):
    """引用的 task/comment/notification 不存在"""

    code = "NOT_FOUND"


class ForbiddenError(TaskflowError):
    """访问策略拒绝了请求的操作"""

    code = "FORBIDDEN"


class ValidationFailure(TaskflowError):
    """输入格式错误（边缘层）"""

    code = "VALIDATION_FAILED"


class DeliveryFailure(TaskflowError):
    """事件投递失败（broker 不可达 / 发布超时）

    非致命：记录日志后吸收，mutation 已提交即视为成功。
    """

    code = "DELIVERY_FAILED"

    def __init__(self, topic: str, original_error: Exception | None = None) -> None:
        """
        Args:
            topic: 投递目标 topic
            original_error: 原始异常
        """
        detail = f": {original_error}" if original_error is not None else ""
        super().__init__(f"事件投递失败 {topic}{detail}")
        self.topic = topic
        self.original_error = original_error
