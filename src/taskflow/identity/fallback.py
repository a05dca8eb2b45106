"""FallbackIdentityResolver -- 身份解析降级包装

身份服务失败不能导致主操作失败：任何异常或缺失都替换为
UserIdentity(id, "Unknown", "Unknown") 占位身份。
"""

from typing import Protocol

import structlog

from .models import UserIdentity

log = structlog.get_logger()


class IdentityResolver(Protocol):
    """身份解析接口"""

    async def resolve(self, user_id: str) -> UserIdentity | None:
        ...

    async def resolve_many(self, user_ids: list[str]) -> list[UserIdentity]:
        ...

    async def close(self) -> None:
        ...


class FallbackIdentityResolver:
    """包装任意 IdentityResolver，保证总能返回身份（可能是占位身份）"""

    def __init__(self, inner: IdentityResolver) -> None:
        self._inner = inner

    async def resolve(self, user_id: str) -> UserIdentity:
        try:
            user = await self._inner.resolve(user_id)
        except Exception as e:
            log.warning("identity_fallback_activated", user_id=user_id, error=str(e))
            return UserIdentity.placeholder(user_id)
        return user or UserIdentity.placeholder(user_id)

    async def resolve_many(self, user_ids: list[str]) -> list[UserIdentity]:
        """按输入顺序返回每个 ID 的身份，缺失项以占位身份补齐"""
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        try:
            users = await self._inner.resolve_many(ids)
        except Exception as e:
            log.warning("identity_fallback_activated", count=len(ids), error=str(e))
            users = []
        by_id = {u.id: u for u in users}
        return [by_id.get(uid) or UserIdentity.placeholder(uid) for uid in ids]

    async def close(self) -> None:
        await self._inner.close()
