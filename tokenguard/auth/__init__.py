"""
Package auth provides the token claim codec, result types and error classes.

This package implements:
- HS512 signing and verification of access and refresh tokens
- Distinguishable failure kinds (malformed, expired, invalid, ...)
- A registry of claim extensions for deployment-specific claims
"""

from .types import (
    TokenUse,
    TokenClaims,
    IssuedToken,
    TokenPair,
    AuthResult,
)

from .claims import (
    ClaimsCodec,
    ClaimExtension,
    register_claim_extension,
    get_claim_extension,
    available_claim_extensions,
)

from .errors import (
    ErrorKind,
    MESSAGE_KEYS,
    AuthError,
    NoTokenError,
    MalformedTokenError,
    ExpiredTokenError,
    InvalidTokenError,
    AccessDeniedError,
    IPChangedError,
    RefreshConflictError,
    NoSessionError,
    SessionNotFoundError,
    RequestRejectedError,
    RateLimitExceededError,
    RepeatSubmitError,
    StoreError,
    StoreUnavailableError,
    error_for,
)

__all__ = [
    # Types
    'TokenUse',
    'TokenClaims',
    'IssuedToken',
    'TokenPair',
    'AuthResult',

    # Codec
    'ClaimsCodec',
    'ClaimExtension',
    'register_claim_extension',
    'get_claim_extension',
    'available_claim_extensions',

    # Errors
    'ErrorKind',
    'MESSAGE_KEYS',
    'AuthError',
    'NoTokenError',
    'MalformedTokenError',
    'ExpiredTokenError',
    'InvalidTokenError',
    'AccessDeniedError',
    'IPChangedError',
    'RefreshConflictError',
    'NoSessionError',
    'SessionNotFoundError',
    'RequestRejectedError',
    'RateLimitExceededError',
    'RepeatSubmitError',
    'StoreError',
    'StoreUnavailableError',
    'error_for',
]
