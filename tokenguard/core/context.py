"""
Per-request context for tokenguard.

A ``RequestContext`` is created by the boundary layer for each inbound request
and passed explicitly to every issuance/validation call. It is the only place
the authenticated principal is published; one writer per request, many
readers during it, cleared when the request scope exits.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from ..common.utils import generate_request_id, get_current_time
from .types import Principal, SessionIdentity


@dataclass
class ResponseCookie:
    """A cookie the boundary layer must set on the response."""
    name: str
    value: str
    path: str = "/"
    max_age: Optional[int] = None
    http_only: bool = True


@dataclass
class RequestContext:
    """
    Context information for one inbound request.
    """
    request_id: str = field(default_factory=generate_request_id)
    access_ip: Optional[str] = None
    access_url: Optional[str] = None
    method: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    access_time: datetime = field(default_factory=get_current_time)
    body: Optional[str] = None
    principal: Optional[Principal] = None
    identity: Optional[SessionIdentity] = None
    response_cookies: List[ResponseCookie] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._headers = {str(k).lower(): v for k, v in dict(self.headers).items()}

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive request header lookup."""
        return self._headers.get(name.lower())

    def cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)

    def set_cookie(self, name: str, value: str, path: str = "/", max_age: Optional[int] = None) -> None:
        self.response_cookies.append(ResponseCookie(name=name, value=value, path=path, max_age=max_age))

    def drop_cookie(self, name: str) -> None:
        """Withdraw a cookie queued earlier in this request."""
        self.response_cookies = [cookie for cookie in self.response_cookies if cookie.name != name]

    def publish(self, principal: Principal, identity: Optional[SessionIdentity] = None) -> None:
        """Publish the authenticated principal for the rest of this request."""
        self.principal = principal
        self.identity = identity

    def clear(self) -> None:
        """Drop the authenticated principal."""
        self.principal = None
        self.identity = None

    @property
    def authenticated(self) -> bool:
        return self.principal is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'request_id': self.request_id,
            'access_ip': self.access_ip,
            'access_url': self.access_url,
            'method': self.method,
            'access_time': self.access_time.isoformat(),
            'username': self.principal.username if self.principal else None,
            'metadata': self.metadata,
        }


@asynccontextmanager
async def request_scope(context: RequestContext) -> AsyncIterator[RequestContext]:
    """Yield ``context`` and clear its principal on exit, whatever happens."""
    try:
        yield context
    finally:
        context.clear()
