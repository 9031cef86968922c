"""
Handler chain for tokenguard.

Guards (authentication, rate limiting, repeat-submit protection) are plain
async callables ``(ctx, next_handler) -> result`` registered by name and
assembled at startup from ``TokenConfig.middleware``.
"""

import json
import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..auth.errors import RateLimitExceededError, RepeatSubmitError
from ..common.utils import get_current_time
from ..core.context import RequestContext
from ..token.service import BearerTokenService
from .limiter import TokenBucketLimiter

logger = logging.getLogger(__name__)


Handler = Callable[[RequestContext], Awaitable[Any]]
Middleware = Callable[[RequestContext, Handler], Awaitable[Any]]
MiddlewareBuilder = Callable[[BearerTokenService], Middleware]


class HandlerChain:
    """Runs a handler behind an ordered list of middleware; the first entry runs outermost."""

    def __init__(self, middlewares: Sequence[Middleware], handler: Optional[Handler] = None):
        self.middlewares = list(middlewares)
        self.handler = handler

    async def __call__(self, ctx: RequestContext) -> Any:
        return await self.run(ctx, self.handler)

    async def run(self, ctx: RequestContext, handler: Handler) -> Any:
        """Run ``handler`` behind the chain's middleware."""
        if handler is None:
            raise ValueError("No handler to run")
        return await self._dispatch(0, ctx, handler)

    async def _dispatch(self, index: int, ctx: RequestContext, handler: Handler) -> Any:
        if index == len(self.middlewares):
            return await handler(ctx)

        async def next_handler(next_ctx: RequestContext) -> Any:
            return await self._dispatch(index + 1, next_ctx, handler)

        return await self.middlewares[index](ctx, next_handler)


def authenticate(service: BearerTokenService) -> Middleware:
    """
    Require a valid access token; the principal is published on the context.

    Paths matching ``TokenConfig.ignore_urls`` pass through unauthenticated.
    """
    async def middleware(ctx: RequestContext, handler: Handler) -> Any:
        if service.config.ignores(ctx.access_url):
            return await handler(ctx)
        result = await service.parse_access(ctx)
        result.raise_for_error()
        return await handler(ctx)
    return middleware


def authenticate_pinned(service: BearerTokenService) -> Middleware:
    """Like ``authenticate``, also rejecting conflict-flagged tokens used from a new IP."""
    async def middleware(ctx: RequestContext, handler: Handler) -> Any:
        if service.config.ignores(ctx.access_url):
            return await handler(ctx)
        result = await service.parse_access(ctx, pin_ip=True)
        result.raise_for_error()
        return await handler(ctx)
    return middleware


def rate_limit(service: BearerTokenService) -> Middleware:
    """Token bucket per (url, caller address)."""
    limiter = TokenBucketLimiter(service.config.rate_limit)

    async def middleware(ctx: RequestContext, handler: Handler) -> Any:
        identifier = f"{ctx.access_url}:{ctx.access_ip}"
        quota = await limiter.allow(identifier)
        if not quota.allowed:
            logger.warning(f"Rate limit exceeded for {identifier}")
            raise RateLimitExceededError("Rate limit exceeded", retry_after=quota.retry_after)
        return await handler(ctx)
    return middleware


def repeat_guard(service: BearerTokenService) -> Middleware:
    """
    Reject a request identical to the caller's previous one within the interval.

    The caller is identified by its token header, or its address when it
    sends none. The last request's parameters and time are kept in the
    revocation store under ``{app}:repeat:{url}:{caller}``.
    """
    settings = service.config.repeat_guard
    ttl = max(1, math.ceil(settings.interval_ms / 1000))

    async def middleware(ctx: RequestContext, handler: Handler) -> Any:
        caller = (ctx.header(service.config.token_name) or "").strip() or (ctx.access_ip or "")
        key = service.keys.repeat_key(ctx.access_url or "", caller)
        params = ctx.body or ""
        now_ms = int(get_current_time().timestamp() * 1000)

        previous = await service.store.get(key)
        if previous is not None:
            last = json.loads(previous)
            if last.get("params") == params and now_ms - int(last.get("time", 0)) < settings.interval_ms:
                logger.warning(f"Repeated request to {ctx.access_url} rejected")
                raise RepeatSubmitError(settings.message, retry_after=settings.interval_ms / 1000.0)

        await service.store.put_with_expiry(key, json.dumps({"params": params, "time": now_ms}), ttl)
        return await handler(ctx)
    return middleware


# Registry of available middleware
_MIDDLEWARE: Dict[str, MiddlewareBuilder] = {
    'authenticate': authenticate,
    'authenticate_pinned': authenticate_pinned,
    'rate_limit': rate_limit,
    'repeat_guard': repeat_guard,
}


def register_middleware(name: str, builder: MiddlewareBuilder) -> None:
    """
    Register a middleware builder.

    Args:
        name: Name used in ``TokenConfig.middleware``
        builder: Callable building the middleware from the token service
    """
    _MIDDLEWARE[name.lower()] = builder


def available_middleware() -> List[str]:
    """Get list of registered middleware names."""
    return list(_MIDDLEWARE.keys())


def build_chain(service: BearerTokenService, handler: Optional[Handler] = None,
                names: Optional[Sequence[str]] = None) -> HandlerChain:
    """
    Build a handler chain from middleware names.

    Args:
        service: Token service shared by the middleware
        handler: Innermost handler; may instead be given to ``HandlerChain.run``
        names: Middleware names in outermost-first order (defaults to
            ``service.config.middleware``)

    Raises:
        ValueError: If a name is not registered
    """
    if names is None:
        names = service.config.middleware
    middlewares = []
    for name in names:
        builder = _MIDDLEWARE.get(name.lower())
        if builder is None:
            raise ValueError(f"Unknown middleware: {name}")
        middlewares.append(builder(service))
    logger.info(f"Built handler chain: {list(names)}")
    return HandlerChain(middlewares, handler)
