"""
Core configuration and types for tokenguard.
"""

from .config import TokenConfig, StoreConfig, RateLimitConfig, RepeatGuardConfig
from .context import RequestContext, ResponseCookie, request_scope
from .types import (
    AuthType,
    TokenStoreMode,
    Principal,
    SessionIdentity,
    DEFAULT_TENANT,
    tenant_or_default,
)

__all__ = [
    "TokenConfig",
    "StoreConfig",
    "RateLimitConfig",
    "RepeatGuardConfig",
    "AuthType",
    "TokenStoreMode",
    "Principal",
    "SessionIdentity",
    "DEFAULT_TENANT",
    "tenant_or_default",
    "RequestContext",
    "ResponseCookie",
    "request_scope",
]
