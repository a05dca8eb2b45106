"""任务路由

POST   /api/tasks                       创建任务
GET    /api/tasks                       列出调用方可见的任务（创建者或指派人）
GET    /api/tasks/{task_id}             任务详情
PATCH  /api/tasks/{task_id}             部分更新（仅创建者）
DELETE /api/tasks/{task_id}             删除任务（仅创建者）
POST   /api/tasks/{task_id}/comments    发表评论
GET    /api/tasks/{task_id}/comments    评论列表（最新在前）
GET    /api/tasks/{task_id}/history     审计历史（最新在前）

NotFoundError / ForbiddenError 由 main 中注册的异常处理器映射为 404 / 403。
"""

from fastapi import APIRouter, Depends, Query
from taskflow.core.config import DEFAULT_PAGE_SIZE
from taskflow.core.models import CommentCreate, TaskCreate, TaskPatch, TaskStatus

from ..deps import get_current_user_id, get_presenter, get_task_service
from ..services.presenter import ResponsePresenter
from ..services.task_service import TaskService

router = APIRouter()


@router.post("/api/tasks", status_code=201)
async def create_task(
    body: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    task = await service.create_task(body, creator_id=user_id)
    return await presenter.task(task)


@router.get("/api/tasks")
async def list_tasks(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=100),
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    """查询调用方参与的任务，按 created_at 倒序"""
    result = await service.list_tasks(
        user_id,
        page=page,
        size=size,
        status=status.value if status else None,
    )
    return await presenter.task_page(result)


@router.get("/api/tasks/{task_id}")
async def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    task = await service.get_task(task_id, user_id)
    return await presenter.task(task)


@router.patch("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    body: TaskPatch,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    task = await service.update_task(task_id, body, user_id)
    return await presenter.task(task)


@router.delete("/api/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(task_id, user_id)
    return {"message": "Task deleted successfully"}


@router.post("/api/tasks/{task_id}/comments", status_code=201)
async def create_comment(
    task_id: str,
    body: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    comment = await service.add_comment(task_id, body.content, author_id=user_id)
    return await presenter.comment(comment)


@router.get("/api/tasks/{task_id}/comments")
async def list_comments(
    task_id: str,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    result = await service.list_comments(task_id, user_id, page=page, size=size)
    return await presenter.comment_page(result)


@router.get("/api/tasks/{task_id}/history")
async def get_task_history(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    presenter: ResponsePresenter = Depends(get_presenter),
):
    entries = await service.get_history(task_id, user_id)
    return await presenter.history(entries)
