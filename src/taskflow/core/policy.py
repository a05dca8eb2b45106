"""访问策略评估器 -- 纯函数，无状态

规则：
- READ / COMMENT：创建者或任一指派人
- UPDATE / DELETE：仅创建者（指派人身份不足）
- actor 为 None（服务间内部调用）：无条件放行

评估结果以 AccessDecision 值返回，不抛异常；
对象不存在（NOT_FOUND）与拒绝访问（FORBIDDEN）严格区分。
"""

from enum import StrEnum

from .exceptions import ForbiddenError, NotFoundError
from .models.enums import TaskOperation
from .models.task import Task

_OWNER_ONLY: frozenset[TaskOperation] = frozenset(
    {TaskOperation.UPDATE, TaskOperation.DELETE}
)


class AccessDecision(StrEnum):
    ALLOW = "ALLOW"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"


def evaluate(
    task: Task | None,
    actor_id: str | None,
    operation: TaskOperation,
) -> AccessDecision:
    """评估 actor 对任务的操作权限

    Args:
        task: 任务快照，None 表示 ID 未解析到对象
        actor_id: 操作者 ID，None 表示内部/系统调用
        operation: 请求的操作

    Returns:
        AccessDecision
    """
    if task is None:
        return AccessDecision.NOT_FOUND
    if actor_id is None:
        return AccessDecision.ALLOW
    if actor_id == task.creator_id:
        return AccessDecision.ALLOW
    if operation in _OWNER_ONLY:
        return AccessDecision.FORBIDDEN
    if actor_id in task.assignee_ids:
        return AccessDecision.ALLOW
    return AccessDecision.FORBIDDEN


_DENIED_MESSAGES = {
    TaskOperation.READ: "You do not have access to this task",
    TaskOperation.COMMENT: "You do not have access to comment on this task",
    TaskOperation.UPDATE: "Only the task creator can update this task",
    TaskOperation.DELETE: "Only the task creator can delete this task",
}


def check_access(
    task: Task | None,
    actor_id: str | None,
    operation: TaskOperation,
    task_id: str,
) -> Task:
    """评估并把非 ALLOW 结果转换为异常（供服务层使用）

    Raises:
        NotFoundError: 任务不存在
        ForbiddenError: 策略拒绝
    """
    decision = evaluate(task, actor_id, operation)
    if task is None or decision is AccessDecision.NOT_FOUND:
        raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
    if decision is AccessDecision.FORBIDDEN:
        raise ForbiddenError(_DENIED_MESSAGES[operation], code="TASK_ACCESS_DENIED")
    return task
