"""NotificationService -- 通知拉取接口

客户端错过实时推送后通过这些操作对账：分页列表、未读数、标记已读、删除。
读写单条通知仅限其所属用户。
"""

import structlog
from taskflow.core.config import NOTIFICATION_PAGE_SIZE
from taskflow.core.exceptions import ForbiddenError, NotFoundError
from taskflow.core.models.notification import Notification
from taskflow.core.models.pagination import Page
from taskflow.core.store.protocols import NotificationStore
from taskflow.core.store.transaction import write_transaction

log = structlog.get_logger()


class NotificationService:
    """Notification Store 之上的拉取操作"""

    def __init__(self, store: NotificationStore) -> None:
        self._store = store

    async def list_notifications(
        self,
        user_id: str,
        page: int = 1,
        size: int = NOTIFICATION_PAGE_SIZE,
    ) -> Page[Notification]:
        """分页查询用户通知，最新在前"""
        items, total = await self._store.list_for_user(
            user_id,
            limit=size,
            offset=(page - 1) * size,
        )
        return Page.build(items, page=page, size=size, total=total)

    async def unread_count(self, user_id: str) -> int:
        return await self._store.count_unread(user_id)

    async def mark_as_read(self, notification_id: str, user_id: str | None = None) -> Notification:
        """标记单条通知为已读

        Raises:
            NotFoundError: 通知不存在
            ForbiddenError: 通知不属于该用户
        """
        notification = await self._get_owned(notification_id, user_id)
        if not notification.read:
            await self._commit(self._store.mark_read(notification_id))
        return notification.model_copy(update={"read": True})

    async def mark_all_as_read(self, user_id: str) -> int:
        """将用户全部未读通知置为已读

        Returns:
            受影响条数
        """
        affected = await self._commit(self._store.mark_all_read(user_id))
        log.info("notifications_marked_read", user_id=user_id, affected=affected)
        return affected

    async def delete_notification(self, notification_id: str, user_id: str | None = None) -> None:
        """删除单条通知

        Raises:
            NotFoundError: 通知不存在
            ForbiddenError: 通知不属于该用户
        """
        await self._get_owned(notification_id, user_id)
        await self._commit(self._store.delete_notification(notification_id))
        log.info("notification_deleted", notification_id=notification_id, user_id=user_id)

    async def _get_owned(self, notification_id: str, user_id: str | None) -> Notification:
        notification = await self._store.get_notification(notification_id)
        if notification is None:
            raise NotFoundError(
                f"Notification {notification_id} not found",
                code="NOTIFICATION_NOT_FOUND",
            )
        if user_id is not None and notification.user_id != user_id:
            raise ForbiddenError(
                "You do not have access to this notification",
                code="NOTIFICATION_ACCESS_DENIED",
            )
        return notification

    async def _commit(self, operation):
        async with write_transaction(self._store.conn, self._store.write_lock):
            return await operation
