"""Taskflow Identity -- 用户身份解析协作方

公开接口导出。
"""

from .client import HttpIdentityResolver
from .config import IdentityConfig, load_identity_config
from .exceptions import IdentityError, IdentityUnavailableError
from .fallback import FallbackIdentityResolver, IdentityResolver
from .models import UserIdentity
from .static import StaticIdentityResolver


def build_identity_resolver(config: IdentityConfig) -> FallbackIdentityResolver:
    """按配置构建带降级的身份解析器"""
    if config.mode == "http":
        inner: IdentityResolver = HttpIdentityResolver(
            base_url=config.base_url,
            timeout_s=config.timeout_s,
        )
    else:
        inner = StaticIdentityResolver(config.static_users)
    return FallbackIdentityResolver(inner)


__all__ = [
    "UserIdentity",
    "IdentityResolver",
    "HttpIdentityResolver",
    "StaticIdentityResolver",
    "FallbackIdentityResolver",
    "IdentityConfig",
    "load_identity_config",
    "build_identity_resolver",
    "IdentityError",
    "IdentityUnavailableError",
]
