"""
Request guards for tokenguard: the handler chain and its aiohttp boundary.
"""

from .limiter import RateLimitQuota, TokenBucketLimiter
from .chain import (
    Handler,
    HandlerChain,
    Middleware,
    authenticate,
    authenticate_pinned,
    available_middleware,
    build_chain,
    rate_limit,
    register_middleware,
    repeat_guard,
)
from .boundary import (
    CONTEXT_KEY,
    build_context,
    create_aiohttp_middleware,
    get_context,
    request_ip,
)

__all__ = [
    "RateLimitQuota",
    "TokenBucketLimiter",
    "Handler",
    "HandlerChain",
    "Middleware",
    "authenticate",
    "authenticate_pinned",
    "available_middleware",
    "build_chain",
    "rate_limit",
    "register_middleware",
    "repeat_guard",
    "CONTEXT_KEY",
    "build_context",
    "create_aiohttp_middleware",
    "get_context",
    "request_ip",
]
