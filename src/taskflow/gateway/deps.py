"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Header, Request
from taskflow.notifications.service import NotificationService

from .services.auth import AuthenticationError
from .services.delivery_hub import DeliveryHub
from .services.presenter import ResponsePresenter
from .services.task_service import TaskService


def get_task_service(request: Request) -> TaskService:
    """从 app.state 获取 TaskService 实例"""
    return request.app.state.task_service


def get_notification_service(request: Request) -> NotificationService:
    """从 app.state 获取 NotificationService 实例"""
    return request.app.state.notification_service


def get_presenter(request: Request) -> ResponsePresenter:
    return request.app.state.presenter


def get_delivery_hub(request: Request) -> DeliveryHub:
    return request.app.state.delivery_hub


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """上游边缘层认证后的调用方 ID（X-User-Id 请求头）"""
    if not x_user_id:
        raise AuthenticationError("Missing X-User-Id header")
    return x_user_id
