"""通知拉取路由 -- 客户端错过实时推送后的对账入口

GET    /api/notifications                    分页列表（最新在前）
GET    /api/notifications/unread-count       未读数
PATCH  /api/notifications/read-all           全部标记已读
PATCH  /api/notifications/{id}/read          单条标记已读（仅所属用户）
DELETE /api/notifications/{id}               删除（仅所属用户）
"""

from fastapi import APIRouter, Depends, Query
from taskflow.core.config import NOTIFICATION_PAGE_SIZE
from taskflow.notifications.service import NotificationService

from ..deps import get_current_user_id, get_notification_service

router = APIRouter()


@router.get("/api/notifications")
async def list_notifications(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=NOTIFICATION_PAGE_SIZE, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    result = await service.list_notifications(user_id, page=page, size=size)
    return result.to_wire()


@router.get("/api/notifications/unread-count")
async def unread_count(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    return {"count": await service.unread_count(user_id)}


@router.patch("/api/notifications/read-all")
async def mark_all_as_read(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    return {"affected": await service.mark_all_as_read(user_id)}


@router.patch("/api/notifications/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    notification = await service.mark_as_read(notification_id, user_id)
    return notification.to_wire()


@router.delete("/api/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    await service.delete_notification(notification_id, user_id)
    return {"message": "Notification deleted successfully"}
