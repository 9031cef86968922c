"""
tokenguard Python Package

Bearer access/refresh token lifecycle with server-side revocation,
refresh replay detection and IP pinning.
"""

__version__ = "0.1.0"

from .core.config import TokenConfig, StoreConfig, RateLimitConfig, RepeatGuardConfig
from .core.context import RequestContext, request_scope
from .core.types import AuthType, Principal, SessionIdentity
from .auth.types import AuthResult, IssuedToken, TokenPair
from .auth.errors import AuthError, ErrorKind, StoreUnavailableError
from .token.service import BearerTokenService
from .token.types import AccessTokenRecord, RefreshTokenRecord

__all__ = [
    "TokenConfig",
    "StoreConfig",
    "RateLimitConfig",
    "RepeatGuardConfig",
    "RequestContext",
    "request_scope",
    "AuthType",
    "Principal",
    "SessionIdentity",
    "AuthResult",
    "IssuedToken",
    "TokenPair",
    "AuthError",
    "ErrorKind",
    "StoreUnavailableError",
    "BearerTokenService",
    "AccessTokenRecord",
    "RefreshTokenRecord",
]
