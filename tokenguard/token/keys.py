"""
Store keyspace for session records.

access:  {app}:auth:{tenant}:access:{authType}:{username}:{accessId}
refresh: {app}:auth:{tenant}:refresh:{authType}:{username}
"""

import re
from typing import Optional, Union

from ..core.types import AuthType, tenant_or_default

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape glob metacharacters so a key segment matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


def _type(auth_type: Union[AuthType, str]) -> str:
    return AuthType.parse(auth_type).value


def _segment(value: str, name: str) -> str:
    if ":" in value:
        raise ValueError(f"{name} must not contain ':': {value}")
    return value


def _tenant(tenant_id: Optional[str]) -> str:
    return _segment(tenant_or_default(tenant_id), "tenant_id")


class SessionKeys:
    """Builds store keys and scan patterns for one application namespace."""

    def __init__(self, app_name: str):
        self.app_name = app_name

    def access_key(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                   username: str, access_id: str) -> str:
        return (f"{self.app_name}:auth:{_tenant(tenant_id)}:access:"
                f"{_type(auth_type)}:{_segment(username, 'username')}:{access_id}")

    def refresh_key(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                    username: str) -> str:
        return (f"{self.app_name}:auth:{_tenant(tenant_id)}:refresh:"
                f"{_type(auth_type)}:{_segment(username, 'username')}")

    def access_pattern(self, tenant_id: Optional[str]) -> str:
        """All access records of a tenant."""
        return f"{escape_glob(self.app_name)}:auth:{escape_glob(_tenant(tenant_id))}:access:*"

    def refresh_pattern(self, tenant_id: Optional[str]) -> str:
        """All refresh records of a tenant."""
        return f"{escape_glob(self.app_name)}:auth:{escape_glob(_tenant(tenant_id))}:refresh:*"

    def user_access_pattern(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                            username: str) -> str:
        """All access records of one user."""
        return (f"{escape_glob(self.app_name)}:auth:{escape_glob(_tenant(tenant_id))}:access:"
                f"{_type(auth_type)}:{escape_glob(_segment(username, 'username'))}:*")

    def repeat_key(self, url: str, caller: str) -> str:
        return f"{self.app_name}:repeat:{url}:{caller}"
