"""
Administrative session operations: listing, revocation and logout.
"""

import logging
from typing import List, Optional, Union

from ..auth.errors import SessionNotFoundError
from ..auth.types import AuthResult
from ..core.context import RequestContext
from ..core.types import AuthType
from ..store.types import RevocationStore
from .keys import SessionKeys
from .types import AccessTokenRecord, RefreshTokenRecord

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Lists and revokes the sessions recorded in the revocation store."""

    def __init__(self, store: RevocationStore, keys: SessionKeys):
        self.store = store
        self.keys = keys

    async def list_access_sessions(self, tenant_id: Optional[str]) -> List[AccessTokenRecord]:
        """
        List the live access sessions of a tenant.

        One prefix scan followed by one pipelined fetch; keys that expire
        between the two are skipped.
        """
        keys = await self.store.scan_list(self.keys.access_pattern(tenant_id))
        values = await self.store.pipeline_get(keys)
        return [AccessTokenRecord.from_json(value) for value in values if value is not None]

    async def list_refresh_sessions(self, tenant_id: Optional[str]) -> List[RefreshTokenRecord]:
        """List the live refresh sessions of a tenant."""
        keys = await self.store.scan_list(self.keys.refresh_pattern(tenant_id))
        values = await self.store.pipeline_get(keys)
        return [RefreshTokenRecord.from_json(value) for value in values if value is not None]

    async def revoke_access(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                            username: str, access_id: str) -> AuthResult:
        """
        Revoke one access session.

        Returns:
            AuthResult whose ``record`` is the removed AccessTokenRecord, or a
            NOT_FOUND failure when no such session exists
        """
        key = self.keys.access_key(tenant_id, auth_type, username, access_id)
        stored = await self.store.get(key)
        if stored is None:
            return AuthResult.from_error(SessionNotFoundError(details={'access_id': access_id}))
        await self.store.delete(key)
        logger.info(f"Revoked access session {access_id} of {username}")
        return AuthResult.success(record=AccessTokenRecord.from_json(stored))

    async def revoke_all_refresh(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                                 username: str) -> Optional[RefreshTokenRecord]:
        """
        Log a user out everywhere.

        Deletes the refresh record and every access record of the user.

        Returns:
            The removed RefreshTokenRecord, or None if there was none

        Raises:
            ValueError: If tenant_id or username contains ":"
        """
        refresh_key = self.keys.refresh_key(tenant_id, auth_type, username)
        stored = await self.store.get(refresh_key)
        await self.store.delete(refresh_key)

        access_keys = await self.store.scan_list(
            self.keys.user_access_pattern(tenant_id, auth_type, username))
        removed = await self.store.pipeline_delete(access_keys)

        logger.info(f"Revoked all sessions of {username}: "
                    f"refresh={'yes' if stored else 'no'}, access={removed}")
        return RefreshTokenRecord.from_json(stored) if stored is not None else None

    async def logout(self, ctx: RequestContext) -> bool:
        """
        End the session of the request's authenticated principal.

        Removes its access record and its refresh record, then clears the
        principal from the context.

        Returns:
            True if anything was removed
        """
        identity = ctx.identity
        if identity is None:
            return False
        keys = [self.keys.refresh_key(identity.tenant_id, identity.auth_type, identity.username)]
        if identity.access_id:
            keys.append(self.keys.access_key(identity.tenant_id, identity.auth_type,
                                             identity.username, identity.access_id))
        removed = await self.store.delete(*keys)
        ctx.clear()
        logger.info(f"Logged out {identity.username}@{identity.tenant} (access_id={identity.access_id})")
        return removed > 0
