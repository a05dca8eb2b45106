"""连接认证 -- 校验 WebSocket / SSE 握手携带的凭证

凭证签发与校验由外部身份服务负责；此处只接受配置中的静态令牌
（TASKFLOW_STATIC_TOKENS），映射为已认证的 user_id。
"""

from taskflow.core.exceptions import TaskflowError


class AuthenticationError(TaskflowError):
    """缺少或无法识别的调用方身份"""

    code = "UNAUTHENTICATED"


class StaticTokenVerifier:
    """token -> user_id 静态映射"""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})

    def verify(self, token: str | None) -> str | None:
        """返回令牌对应的 user_id，无法识别时返回 None"""
        if not token:
            return None
        if token.lower().startswith("bearer "):
            token = token[7:].strip()
        return self._tokens.get(token)
