"""
Core types for tokenguard: the authenticated principal and its session identity.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set

from ..common.utils import is_blank


DEFAULT_TENANT = "default"


class AuthType(Enum):
    """How the principal originally authenticated."""
    APP = "app"
    USER = "user"
    LDAP = "ldap"
    OAUTH = "oauth"

    @classmethod
    def parse(cls, value: Any) -> "AuthType":
        """Accept an AuthType or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown auth type: {value}")


class TokenStoreMode(Enum):
    """Where the access token travels on each request."""
    HEADER = "header"
    COOKIE = "cookie"


def tenant_or_default(tenant_id: Optional[str]) -> str:
    """Blank tenants share the ``default`` keyspace."""
    return DEFAULT_TENANT if is_blank(tenant_id) else tenant_id


@dataclass
class Principal:
    """
    An already-authenticated user as carried inside an access token.

    Roles and permissions are carried opaquely; permissions are colon-delimited
    hierarchical strings where ``*`` stands for any segment.
    """
    username: str
    auth_type: AuthType = AuthType.USER
    tenant_id: Optional[str] = None
    user_id: Optional[Any] = None
    user_code: Optional[Any] = None
    nickname: Optional[str] = None
    dept_id: Optional[Any] = None
    dept_code: Optional[Any] = None
    dept_name: Optional[str] = None
    cluster_id: Optional[int] = None
    cluster_level: Optional[int] = None
    cluster_name: Optional[str] = None
    roles: Set[str] = field(default_factory=set)
    permissions: Set[str] = field(default_factory=set)
    user_properties: Dict[str, Any] = field(default_factory=dict)
    conflict: Optional[bool] = None

    def __post_init__(self):
        if is_blank(self.username):
            raise ValueError("username is required")
        # ":" separates segments of revocation store keys
        if ":" in self.username:
            raise ValueError(f"username must not contain ':': {self.username}")
        if self.tenant_id and ":" in self.tenant_id:
            raise ValueError(f"tenant_id must not contain ':': {self.tenant_id}")
        self.auth_type = AuthType.parse(self.auth_type)
        self.roles = set(self.roles or ())
        self.permissions = set(self.permissions or ())
        self.user_properties = dict(self.user_properties or {})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            'username': self.username,
            'auth_type': self.auth_type.value,
            'tenant_id': self.tenant_id,
            'user_id': self.user_id,
            'user_code': self.user_code,
            'nickname': self.nickname,
            'dept_id': self.dept_id,
            'dept_code': self.dept_code,
            'dept_name': self.dept_name,
            'cluster_id': self.cluster_id,
            'cluster_level': self.cluster_level,
            'cluster_name': self.cluster_name,
            'roles': sorted(self.roles),
            'permissions': sorted(self.permissions),
            'user_properties': self.user_properties,
            'conflict': self.conflict,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Principal':
        """Create from dictionary."""
        return cls(
            username=data['username'],
            auth_type=AuthType.parse(data.get('auth_type', AuthType.USER.value)),
            tenant_id=data.get('tenant_id'),
            user_id=data.get('user_id'),
            user_code=data.get('user_code'),
            nickname=data.get('nickname'),
            dept_id=data.get('dept_id'),
            dept_code=data.get('dept_code'),
            dept_name=data.get('dept_name'),
            cluster_id=data.get('cluster_id'),
            cluster_level=data.get('cluster_level'),
            cluster_name=data.get('cluster_name'),
            roles=set(data.get('roles') or ()),
            permissions=set(data.get('permissions') or ()),
            user_properties=data.get('user_properties') or {},
            conflict=data.get('conflict'),
        )


@dataclass(frozen=True)
class SessionIdentity:
    """Composite identity of one live session in the revocation store."""
    access_id: str
    refresh_id: Optional[str]
    tenant_id: Optional[str]
    auth_type: AuthType
    username: str

    @property
    def tenant(self) -> str:
        return tenant_or_default(self.tenant_id)

    @classmethod
    def for_principal(cls, principal: Principal, access_id: str,
                      refresh_id: Optional[str] = None) -> 'SessionIdentity':
        return cls(
            access_id=access_id,
            refresh_id=refresh_id,
            tenant_id=principal.tenant_id,
            auth_type=principal.auth_type,
            username=principal.username,
        )
