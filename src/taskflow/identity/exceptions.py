"""Identity 异常体系"""


class IdentityError(Exception):
    """Identity 包基础异常"""


class IdentityUnavailableError(IdentityError):
    """身份服务不可达或返回非预期响应

    此异常由 FallbackIdentityResolver 吸收，替换为占位身份。
    """

    def __init__(self, base_url: str, original_error: Exception) -> None:
        """
        Args:
            base_url: 身份服务地址
            original_error: 原始异常
        """
        super().__init__(f"身份服务不可用: {base_url} -- {original_error}")
        self.base_url = base_url
        self.original_error = original_error
