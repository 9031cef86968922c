"""
Server-side session records kept in the revocation store.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.types import AuthType, Principal, SessionIdentity


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class AccessTokenRecord:
    """
    One live access session.

    Its presence in the store is what makes an access token valid when
    server-side checking is enabled; deleting it revokes the token.
    """
    access_id: str
    tenant_id: Optional[str]
    auth_type: AuthType
    username: str
    issued_at: datetime
    expires_at: datetime
    user_id: Optional[Any] = None
    nickname: Optional[str] = None
    login_ip: Optional[str] = None
    login_time: Optional[datetime] = None
    access_ip: Optional[str] = None
    access_time: Optional[datetime] = None
    cluster_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'access_id': self.access_id,
            'tenant_id': self.tenant_id,
            'auth_type': self.auth_type.value,
            'username': self.username,
            'user_id': self.user_id,
            'nickname': self.nickname,
            'issued_at': _iso(self.issued_at),
            'expires_at': _iso(self.expires_at),
            'login_ip': self.login_ip,
            'login_time': _iso(self.login_time),
            'access_ip': self.access_ip,
            'access_time': _iso(self.access_time),
            'cluster_name': self.cluster_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AccessTokenRecord':
        """Create from dictionary."""
        return cls(
            access_id=data['access_id'],
            tenant_id=data.get('tenant_id'),
            auth_type=AuthType.parse(data['auth_type']),
            username=data['username'],
            user_id=data.get('user_id'),
            nickname=data.get('nickname'),
            issued_at=_parse_iso(data['issued_at']),
            expires_at=_parse_iso(data['expires_at']),
            login_ip=data.get('login_ip'),
            login_time=_parse_iso(data.get('login_time')),
            access_ip=data.get('access_ip'),
            access_time=_parse_iso(data.get('access_time')),
            cluster_name=data.get('cluster_name'),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> 'AccessTokenRecord':
        return cls.from_dict(json.loads(raw))


@dataclass
class RefreshTokenRecord:
    """
    The single live refresh session of a (tenant, auth type, username).

    Holds the principal snapshot needed to mint a new access token during
    rotation, and the access id of the session it currently backs.
    """
    refresh_id: str
    access_id: str
    principal: Principal
    conflict: bool
    issued_at: datetime
    expires_at: datetime
    login_ip: Optional[str] = None
    login_time: Optional[datetime] = None

    @property
    def tenant_id(self) -> Optional[str]:
        return self.principal.tenant_id

    @property
    def auth_type(self) -> AuthType:
        return self.principal.auth_type

    @property
    def username(self) -> str:
        return self.principal.username

    def identity(self) -> SessionIdentity:
        return SessionIdentity.for_principal(self.principal, self.access_id, self.refresh_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'refresh_id': self.refresh_id,
            'access_id': self.access_id,
            'tenant_id': self.tenant_id,
            'auth_type': self.auth_type.value,
            'username': self.username,
            'conflict': self.conflict,
            'principal': self.principal.to_dict(),
            'issued_at': _iso(self.issued_at),
            'expires_at': _iso(self.expires_at),
            'login_ip': self.login_ip,
            'login_time': _iso(self.login_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RefreshTokenRecord':
        """Create from dictionary."""
        return cls(
            refresh_id=data['refresh_id'],
            access_id=data['access_id'],
            principal=Principal.from_dict(data['principal']),
            conflict=bool(data.get('conflict', False)),
            issued_at=_parse_iso(data['issued_at']),
            expires_at=_parse_iso(data['expires_at']),
            login_ip=data.get('login_ip'),
            login_time=_parse_iso(data.get('login_time')),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> 'RefreshTokenRecord':
        return cls.from_dict(json.loads(raw))
