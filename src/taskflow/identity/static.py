"""StaticIdentityResolver -- 内存映射的身份解析（开发与测试环境）"""

from .models import UserIdentity


class StaticIdentityResolver:
    """从固定用户列表解析身份"""

    def __init__(self, users: list[UserIdentity] | None = None) -> None:
        self._users: dict[str, UserIdentity] = {u.id: u for u in users or []}

    def add(self, user: UserIdentity) -> None:
        self._users[user.id] = user

    async def resolve(self, user_id: str) -> UserIdentity | None:
        return self._users.get(user_id)

    async def resolve_many(self, user_ids: list[str]) -> list[UserIdentity]:
        return [self._users[uid] for uid in user_ids if uid in self._users]

    async def close(self) -> None:
        return None
