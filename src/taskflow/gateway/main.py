"""FastAPI 应用主文件

app 创建 + lifespan 管理：三个 SQLite 库（任务、通知、broker）初始化/关闭、
EventPublisher、Notification Consumer 与 Delivery Gateway 后台消费循环、
身份解析器、路由与异常处理器注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse
from taskflow.broker import BrokerConsumer, EventPublisher, create_broker, load_broker_config
from taskflow.core.config import (
    REGISTER_GRACE_MS,
    get_broker_db_path,
    get_notifications_db_path,
    get_static_tokens,
    get_tasks_db_path,
)
from taskflow.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    TaskflowError,
    ValidationFailure,
)
from taskflow.core.logging_config import configure_logfire, configure_logging
from taskflow.core.models import MUTATION_TOPICS, Topic
from taskflow.core.store import create_notification_store, create_store_group
from taskflow.identity import build_identity_resolver, load_identity_config
from taskflow.notifications.consumer import NOTIFICATIONS_GROUP, NotificationConsumer
from taskflow.notifications.service import NotificationService

from .middleware.request_context import RequestContextMiddleware
from .routes import health, notifications, stream, tasks, ws
from .services.auth import AuthenticationError, StaticTokenVerifier
from .services.delivery_gateway import DELIVERY_GROUP, DeliveryGateway
from .services.delivery_hub import DeliveryHub
from .services.presenter import ResponsePresenter
from .services.task_service import TaskService

log = structlog.get_logger()


async def init_app_state(app: FastAPI, start_consumers: bool = True) -> None:
    """初始化 app.state 上的全部共享实例

    Args:
        app: FastAPI 应用
        start_consumers: 是否以后台 task 启动消费循环（测试中可手动 run_once）
    """
    broker_config = load_broker_config()
    app.state.broker_config = broker_config

    store_group = await create_store_group(get_tasks_db_path())
    notification_store = await create_notification_store(get_notifications_db_path())
    broker = await create_broker(get_broker_db_path(), lease_s=broker_config.lease_s)
    app.state.store_group = store_group
    app.state.notification_store = notification_store
    app.state.broker = broker

    publisher = EventPublisher(broker, broker_config)
    app.state.publisher = publisher

    identity_config = load_identity_config()
    identity = build_identity_resolver(identity_config)
    app.state.identity = identity
    app.state.presenter = ResponsePresenter(identity)

    app.state.task_service = TaskService(store_group, publisher)
    app.state.notification_service = NotificationService(notification_store)

    hub = DeliveryHub()
    app.state.delivery_hub = hub
    app.state.token_verifier = StaticTokenVerifier(get_static_tokens())
    app.state.register_grace_ms = REGISTER_GRACE_MS

    notification_consumer = NotificationConsumer(notification_store, publisher)
    app.state.notification_worker = BrokerConsumer(
        broker,
        NOTIFICATIONS_GROUP,
        MUTATION_TOPICS,
        notification_consumer.handle,
        broker_config,
    )
    app.state.delivery_worker = BrokerConsumer(
        broker,
        DELIVERY_GROUP,
        (Topic.NOTIFICATION_SEND,),
        DeliveryGateway(hub).handle,
        broker_config,
    )
    app.state.consumers = [app.state.notification_worker, app.state.delivery_worker]
    app.state.consumers_started = start_consumers
    if start_consumers:
        for consumer in app.state.consumers:
            consumer.start()

    log.info(
        "gateway_initialized",
        identity_mode=identity_config.mode,
        consumers_started=start_consumers,
    )


async def shutdown_app_state(app: FastAPI) -> None:
    """停止消费循环并关闭所有连接"""
    state = app.state
    if getattr(state, "consumers_started", False):
        for consumer in state.consumers:
            await consumer.stop()
    if getattr(state, "identity", None) is not None:
        await state.identity.close()
    for name in ("store_group", "notification_store", "broker"):
        holder = getattr(state, name, None)
        if holder is not None:
            await holder.conn.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化存储与消费循环，关闭时清理"""
    await init_app_state(app)
    yield
    await shutdown_app_state(app)


def _error_response(status_code: int, exc: TaskflowError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


def register_error_handlers(app: FastAPI) -> None:
    """领域异常 -> HTTP 状态码 + {"error": {"code", "message"}}"""

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(ForbiddenError)
    async def _forbidden(request: Request, exc: ForbiddenError):
        return _error_response(403, exc)

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(request: Request, exc: AuthenticationError):
        return _error_response(401, exc)

    @app.exception_handler(ValidationFailure)
    async def _invalid(request: Request, exc: ValidationFailure):
        return _error_response(422, exc)

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in errors
        )
        return _error_response(422, ValidationFailure(message or "Invalid request"))

    @app.exception_handler(TaskflowError)
    async def _internal(request: Request, exc: TaskflowError):
        log.error("unhandled_domain_error", code=exc.code, error=exc.message)
        return _error_response(500, exc)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Taskflow Gateway",
        version="0.1.0",
        description="任务变更、审计历史与实时通知 API",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    configure_logging("gateway")
    configure_logfire("gateway", app)

    register_error_handlers(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(notifications.router, tags=["notifications"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(ws.router, tags=["realtime"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
