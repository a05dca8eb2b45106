"""HttpIdentityResolver -- 通过 HTTP 调用身份服务

GET  {base_url}/users/{id}     -> 单个用户，404 表示不存在
POST {base_url}/users/batch    -> {"userIds": [...]} 批量查询
"""

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from .exceptions import IdentityUnavailableError
from .models import UserIdentity

log = structlog.get_logger()

_USERS_ADAPTER = TypeAdapter(list[UserIdentity])


class HttpIdentityResolver:
    """身份服务 HTTP 客户端

    连接失败、超时、非 2xx（404 除外）以及响应格式错误统一抛出
    IdentityUnavailableError，由调用方决定是否降级。
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: 身份服务基础 URL
            timeout_s: 请求超时（秒）
            transport: 自定义传输层（测试时注入 MockTransport）
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s,
            transport=transport,
        )

    async def resolve(self, user_id: str) -> UserIdentity | None:
        """查询单个用户，不存在时返回 None"""
        try:
            resp = await self._client.get(f"/users/{user_id}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return UserIdentity.model_validate(resp.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            log.debug("identity_resolve_failed", user_id=user_id, error=str(e))
            raise IdentityUnavailableError(self._base_url, e) from e

    async def resolve_many(self, user_ids: list[str]) -> list[UserIdentity]:
        """批量查询用户，只返回存在的用户"""
        if not user_ids:
            return []
        try:
            resp = await self._client.post("/users/batch", json={"userIds": user_ids})
            resp.raise_for_status()
            return _USERS_ADAPTER.validate_python(resp.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            log.debug("identity_resolve_many_failed", count=len(user_ids), error=str(e))
            raise IdentityUnavailableError(self._base_url, e) from e

    async def close(self) -> None:
        await self._client.aclose()
