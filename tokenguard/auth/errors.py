"""
Authentication error classes for tokenguard.
"""

from enum import Enum


class ErrorKind(Enum):
    """Outcome kinds of token validation, rotation and revocation."""
    NO_TOKEN = "no_token"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    INVALID = "invalid"
    DENIED = "denied"
    IP_CHANGED = "ip_changed"
    CONFLICT = "conflict"
    NO_SESSION = "no_session"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"


# Message keys for the boundary layer's translation catalogue.
MESSAGE_KEYS = {
    ErrorKind.NO_TOKEN: "auth.access.empty",
    ErrorKind.MALFORMED: "auth.access.malformed",
    ErrorKind.EXPIRED: "auth.access.expire",
    ErrorKind.INVALID: "auth.access.invalid",
    ErrorKind.DENIED: "auth.access.denied",
    ErrorKind.IP_CHANGED: "auth.access.changed.ip",
    ErrorKind.CONFLICT: "auth.refresh.changed",
    ErrorKind.NO_SESSION: "auth.refresh.empty",
    ErrorKind.NOT_FOUND: "auth.session.notfound",
    ErrorKind.STORE_UNAVAILABLE: "auth.store.unavailable",
}


class AuthError(Exception):
    """Base authentication error."""

    kind = ErrorKind.INVALID

    def __init__(self, message: str, error_code: ErrorKind = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.kind
        self.details = details or {}

    @property
    def message_key(self) -> str:
        return MESSAGE_KEYS[self.error_code]


class NoTokenError(AuthError):
    """No access token was presented."""
    kind = ErrorKind.NO_TOKEN

    def __init__(self, message: str = "No access token presented", details: dict = None):
        super().__init__(message, details=details)


class MalformedTokenError(AuthError):
    """Token is not a well-formed signed token."""
    kind = ErrorKind.MALFORMED

    def __init__(self, message: str = "Token is malformed", details: dict = None):
        super().__init__(message, details=details)


class ExpiredTokenError(AuthError):
    """Token has expired."""
    kind = ErrorKind.EXPIRED

    def __init__(self, message: str = "Token has expired", details: dict = None):
        super().__init__(message, details=details)


class InvalidTokenError(AuthError):
    """Token signature or claims failed verification."""
    kind = ErrorKind.INVALID

    def __init__(self, message: str = "Token is invalid", details: dict = None):
        super().__init__(message, details=details)


class AccessDeniedError(AuthError):
    """Token verifies but its server-side record is gone (revoked or logged out)."""
    kind = ErrorKind.DENIED

    def __init__(self, message: str = "Access token has been revoked", details: dict = None):
        super().__init__(message, details=details)


class IPChangedError(AuthError):
    """IP-pinned token presented from a different address than it was issued to."""
    kind = ErrorKind.IP_CHANGED

    def __init__(self, message: str = "Access IP changed, refresh required", details: dict = None):
        super().__init__(message, details=details)


class RefreshConflictError(AuthError):
    """Refresh token was already consumed by an earlier rotation."""
    kind = ErrorKind.CONFLICT

    def __init__(self, message: str = "Refresh token already used", details: dict = None):
        super().__init__(message, details=details)


class NoSessionError(AuthError):
    """No refresh session exists; the principal must re-authenticate."""
    kind = ErrorKind.NO_SESSION

    def __init__(self, message: str = "Refresh session does not exist", details: dict = None):
        super().__init__(message, details=details)


class SessionNotFoundError(AuthError):
    """Requested session record does not exist."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "Session not found", details: dict = None):
        super().__init__(message, details=details)


ERRORS_BY_KIND = {
    cls.kind: cls for cls in (
        NoTokenError, MalformedTokenError, ExpiredTokenError, InvalidTokenError,
        AccessDeniedError, IPChangedError, RefreshConflictError, NoSessionError,
        SessionNotFoundError,
    )
}


def error_for(kind: ErrorKind, message: str = None, details: dict = None) -> AuthError:
    """Build the typed error for an error kind."""
    cls = ERRORS_BY_KIND.get(kind)
    if cls is None:
        return AuthError(message or kind.value, kind, details)
    if message is None:
        return cls(details=details)
    return cls(message, details=details)


class RequestRejectedError(Exception):
    """Request refused by a handler-chain guard before reaching the handler."""

    def __init__(self, message: str, retry_after: float = None):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class RateLimitExceededError(RequestRejectedError):
    """Caller exceeded its request budget."""


class RepeatSubmitError(RequestRejectedError):
    """Identical request repeated within the guard interval."""


class StoreError(Exception):
    """Base exception for revocation store errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StoreUnavailableError(StoreError):
    """Backing store could not be reached; not an authentication outcome."""
    error_code = ErrorKind.STORE_UNAVAILABLE
