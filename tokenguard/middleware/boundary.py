"""
aiohttp boundary for tokenguard.

Builds a ``RequestContext`` from each ``web.Request``, runs the configured
handler chain around the route handler and turns guard failures into JSON
error responses.
"""

import logging
from typing import Callable, Optional, Sequence

from aiohttp import web

from ..auth.errors import AuthError, RequestRejectedError, StoreUnavailableError
from ..core.context import RequestContext, request_scope
from ..token.service import BearerTokenService
from .chain import build_chain


logger = logging.getLogger(__name__)

CONTEXT_KEY = web.RequestKey("tokenguard.context", RequestContext)


def request_ip(request: web.Request) -> Optional[str]:
    """Client address, honouring proxy headers."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip

    return request.remote


async def build_context(request: web.Request, read_body: bool = True) -> RequestContext:
    """
    Create the request context for an inbound aiohttp request.

    The body is only read when ``read_body`` is set; undecodable bytes are
    replaced so binary uploads never fail here.
    """
    body = None
    if read_body and request.can_read_body:
        raw = await request.read()
        body = raw.decode(request.charset or "utf-8", errors="replace")
    elif request.query_string:
        body = request.query_string
    return RequestContext(
        access_ip=request_ip(request),
        access_url=request.path,
        method=request.method,
        headers=dict(request.headers),
        cookies=dict(request.cookies),
        body=body,
    )


def get_context(request: web.Request) -> RequestContext:
    """Context attached to ``request`` by the tokenguard middleware."""
    return request[CONTEXT_KEY]


def _error_response(status: int, error: str, message: str, message_key: Optional[str] = None,
                    headers: Optional[dict] = None) -> web.Response:
    body = {"code": status, "error": error, "message": message}
    if message_key:
        body["message_key"] = message_key
    return web.json_response(body, status=status, headers=headers)


def create_aiohttp_middleware(service: BearerTokenService,
                              names: Optional[Sequence[str]] = None) -> Callable:
    """
    Create aiohttp middleware running the tokenguard handler chain.

    Args:
        service: Token service
        names: Middleware names (defaults to ``service.config.middleware``)

    Returns:
        aiohttp middleware
    """
    if names is None:
        names = service.config.middleware
    chain = build_chain(service, names=names)
    # Only the repeat guard looks at request bodies
    read_body = "repeat_guard" in [name.lower() for name in names]

    @web.middleware
    async def middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        ctx = await build_context(request, read_body=read_body)
        request[CONTEXT_KEY] = ctx

        async def invoke(_: RequestContext) -> web.StreamResponse:
            return await handler(request)

        async with request_scope(ctx):
            try:
                response = await chain.run(ctx, invoke)
            except AuthError as e:
                logger.debug(f"Request {ctx.request_id} unauthorized: {e.error_code.value}")
                response = _error_response(401, e.error_code.value, e.message, e.message_key)
            except RequestRejectedError as e:
                headers = {}
                if e.retry_after is not None:
                    headers['Retry-After'] = str(max(1, int(round(e.retry_after))))
                response = _error_response(429, "too_many_requests", e.message, headers=headers)
            except StoreUnavailableError as e:
                logger.error(f"Request {ctx.request_id} failed, store unavailable: {e.message}")
                response = _error_response(503, e.error_code.value, "Session store unavailable",
                                           "auth.store.unavailable")

            for cookie in ctx.response_cookies:
                response.set_cookie(cookie.name, cookie.value, path=cookie.path,
                                    max_age=cookie.max_age, httponly=cookie.http_only)
            return response

    return middleware
