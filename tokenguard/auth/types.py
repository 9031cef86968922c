"""
Claim and result types for tokenguard authentication.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.utils import get_current_time
from ..core.types import AuthType, Principal, SessionIdentity
from .errors import AuthError, ErrorKind, MESSAGE_KEYS, error_for


class TokenUse(Enum):
    """Which secret a token is signed with and what it may be used for."""
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class TokenClaims:
    """Decoded (or to-be-encoded) claim set of an access or refresh token."""
    token_use: TokenUse
    auth_type: AuthType
    username: str
    tenant_id: Optional[str] = None
    access_id: Optional[str] = None
    refresh_id: Optional[str] = None
    access_ip: Optional[str] = None
    conflict: bool = False
    user_id: Optional[Any] = None
    user_code: Optional[Any] = None
    nickname: Optional[str] = None
    user_properties: Dict[str, Any] = field(default_factory=dict)
    roles: List[str] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    dept_id: Optional[Any] = None
    dept_code: Optional[Any] = None
    dept_name: Optional[str] = None
    cluster_id: Optional[int] = None
    cluster_level: Optional[int] = None
    cluster_name: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_access(cls, principal: Principal, identity: SessionIdentity,
                   access_ip: Optional[str], conflict: bool) -> 'TokenClaims':
        return cls(
            token_use=TokenUse.ACCESS,
            auth_type=principal.auth_type,
            username=principal.username,
            tenant_id=principal.tenant_id,
            access_id=identity.access_id,
            refresh_id=identity.refresh_id,
            access_ip=access_ip,
            conflict=conflict,
            user_id=principal.user_id,
            user_code=principal.user_code,
            nickname=principal.nickname,
            user_properties=dict(principal.user_properties),
            roles=sorted(principal.roles),
            permissions=sorted(principal.permissions),
            dept_id=principal.dept_id,
            dept_code=principal.dept_code,
            dept_name=principal.dept_name,
            cluster_id=principal.cluster_id,
            cluster_level=principal.cluster_level,
            cluster_name=principal.cluster_name,
        )

    @classmethod
    def for_refresh(cls, principal: Principal, identity: SessionIdentity,
                    conflict: bool) -> 'TokenClaims':
        return cls(
            token_use=TokenUse.REFRESH,
            auth_type=principal.auth_type,
            username=principal.username,
            tenant_id=principal.tenant_id,
            refresh_id=identity.refresh_id,
            conflict=conflict,
        )

    def to_principal(self) -> Principal:
        """Rebuild the principal carried by an access token."""
        return Principal(
            username=self.username,
            auth_type=self.auth_type,
            tenant_id=self.tenant_id,
            user_id=self.user_id,
            user_code=self.user_code,
            nickname=self.nickname,
            dept_id=self.dept_id,
            dept_code=self.dept_code,
            dept_name=self.dept_name,
            cluster_id=self.cluster_id,
            cluster_level=self.cluster_level,
            cluster_name=self.cluster_name,
            roles=set(self.roles),
            permissions=set(self.permissions),
            user_properties=dict(self.user_properties),
            conflict=self.conflict,
        )

    def identity(self) -> SessionIdentity:
        return SessionIdentity(
            access_id=self.access_id,
            refresh_id=self.refresh_id,
            tenant_id=self.tenant_id,
            auth_type=self.auth_type,
            username=self.username,
        )


@dataclass
class IssuedToken:
    """A freshly signed access token."""
    access_token: str
    identity: SessionIdentity
    issued_at: datetime
    expires_at: datetime
    token_type: str = "Bearer"

    @property
    def expires_in(self) -> int:
        return max(0, int((self.expires_at - self.issued_at).total_seconds()))


@dataclass
class TokenPair:
    """Access + refresh token returned in an issuance response body."""
    access_token: str
    refresh_token: Optional[str]
    identity: SessionIdentity
    issued_at: datetime
    access_expires_at: datetime
    refresh_expires_at: Optional[datetime] = None
    token_type: str = "Bearer"

    @property
    def expires_in(self) -> int:
        return max(0, int((self.access_expires_at - self.issued_at).total_seconds()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to response-body dictionary."""
        result = {
            'access_token': self.access_token,
            'token_type': self.token_type,
            'expires_in': self.expires_in,
        }
        if self.refresh_token is not None:
            result['refresh_token'] = self.refresh_token
        if self.refresh_expires_at is not None:
            result['refresh_expires_in'] = max(
                0, int((self.refresh_expires_at - self.issued_at).total_seconds()))
        return result


@dataclass
class AuthResult:
    """
    Tagged outcome of a validation, rotation or revocation call.

    Exactly one of the success payload fields or ``error_code`` is meaningful,
    depending on ``ok``.
    """
    ok: bool
    error_code: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    principal: Optional[Principal] = None
    identity: Optional[SessionIdentity] = None
    claims: Optional[TokenClaims] = None
    tokens: Optional[TokenPair] = None
    record: Optional[Any] = None
    validated_at: datetime = field(default_factory=get_current_time)

    @classmethod
    def success(cls, **kwargs) -> 'AuthResult':
        return cls(ok=True, **kwargs)

    @classmethod
    def failure(cls, error_code: ErrorKind, error_message: Optional[str] = None) -> 'AuthResult':
        return cls(ok=False, error_code=error_code, error_message=error_message)

    @classmethod
    def from_error(cls, error: AuthError) -> 'AuthResult':
        return cls(ok=False, error_code=error.error_code, error_message=error.message)

    @property
    def message_key(self) -> Optional[str]:
        if self.error_code is None:
            return None
        return MESSAGE_KEYS[self.error_code]

    def raise_for_error(self) -> 'AuthResult':
        """Raise the typed AuthError for a failed result; return self otherwise."""
        if not self.ok:
            raise error_for(self.error_code, self.error_message)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'ok': self.ok,
            'validated_at': self.validated_at.isoformat(),
        }
        if self.error_code is not None:
            result['error_code'] = self.error_code.value
            result['message_key'] = self.message_key
        if self.error_message is not None:
            result['error_message'] = self.error_message
        if self.principal is not None:
            result['principal'] = self.principal.to_dict()
        if self.tokens is not None:
            result['tokens'] = self.tokens.to_dict()
        return result
