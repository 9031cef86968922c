"""
Bearer token service: one entry point for the whole token lifecycle.
"""

import logging
from typing import List, Optional, Union

from ..auth.claims import ClaimsCodec
from ..auth.types import AuthResult, IssuedToken, TokenPair
from ..core.config import TokenConfig
from ..core.context import RequestContext
from ..core.types import AuthType, Principal, SessionIdentity
from ..store.factory import create_revocation_store
from ..store.types import RevocationStore
from .issuer import TokenIssuer
from .keys import SessionKeys
from .refresh import RefreshCoordinator
from .sessions import SessionRegistry
from .types import AccessTokenRecord, RefreshTokenRecord
from .validator import TokenValidator

logger = logging.getLogger(__name__)


class BearerTokenService:
    """
    Issues, validates, rotates and revokes bearer tokens.

    All collaborators share one codec, one keyspace and one revocation store.
    """

    def __init__(self, config: TokenConfig, store: Optional[RevocationStore] = None):
        """
        Initialize the service.

        Args:
            config: Token configuration
            store: Revocation store (defaults to the backend named in ``config.store``)
        """
        self.config = config
        self.store = store or create_revocation_store(config.store)
        self.codec = ClaimsCodec(
            algorithm=config.algorithm,
            leeway=config.leeway_seconds,
            extensions=config.claim_extensions,
        )
        self.keys = SessionKeys(config.app_name)
        self.issuer = TokenIssuer(config, self.store, self.codec, self.keys)
        self.validator = TokenValidator(config, self.store, self.codec, self.keys)
        self.refresher = RefreshCoordinator(self.issuer, self.validator)
        self.sessions = SessionRegistry(self.store, self.keys)

    @classmethod
    def new(cls, config: TokenConfig, store: Optional[RevocationStore] = None) -> "BearerTokenService":
        """
        Create a service after validating its configuration.

        Raises:
            ValueError: If configuration is invalid

        Example:
            service = BearerTokenService.new(TokenConfig(
                access_secret=os.environ["ACCESS_SECRET"],
                refresh_secret=os.environ["REFRESH_SECRET"],
            ))
        """
        config.validate()
        service = cls(config, store)
        logger.info(f"Bearer token service created for app {config.app_name} "
                    f"(store={type(service.store).__name__}, token_store={config.token_store.value})")
        return service

    async def issue_access(self, principal: Principal, ctx: RequestContext,
                           identity: Optional[SessionIdentity] = None) -> IssuedToken:
        return await self.issuer.issue_access(principal, ctx, identity)

    async def issue_access_and_refresh(self, principal: Principal, ctx: RequestContext,
                                       identity: Optional[SessionIdentity] = None) -> TokenPair:
        return await self.issuer.issue_access_and_refresh(principal, ctx, identity)

    def extract(self, ctx: RequestContext) -> Optional[str]:
        return self.validator.extract(ctx)

    async def parse_access(self, ctx: RequestContext, pin_ip: bool = False) -> AuthResult:
        return await self.validator.parse_access(ctx, pin_ip=pin_ip)

    async def parse_access_token(self, raw: str, ctx: RequestContext,
                                 pin_ip: bool = False) -> AuthResult:
        return await self.validator.parse_access_token(raw, ctx, pin_ip=pin_ip)

    async def refresh_access_only(self, ctx: RequestContext) -> AuthResult:
        return await self.refresher.refresh_access_only(ctx)

    async def refresh_access_and_refresh(self, refresh_token: Optional[str],
                                         ctx: RequestContext) -> AuthResult:
        return await self.refresher.refresh_access_and_refresh(refresh_token, ctx)

    async def list_access_sessions(self, tenant_id: Optional[str]) -> List[AccessTokenRecord]:
        return await self.sessions.list_access_sessions(tenant_id)

    async def list_refresh_sessions(self, tenant_id: Optional[str]) -> List[RefreshTokenRecord]:
        return await self.sessions.list_refresh_sessions(tenant_id)

    async def revoke_access(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                            username: str, access_id: str) -> AuthResult:
        return await self.sessions.revoke_access(tenant_id, auth_type, username, access_id)

    async def revoke_all_refresh(self, tenant_id: Optional[str], auth_type: Union[AuthType, str],
                                 username: str) -> Optional[RefreshTokenRecord]:
        return await self.sessions.revoke_all_refresh(tenant_id, auth_type, username)

    async def logout(self, ctx: RequestContext) -> bool:
        return await self.sessions.logout(ctx)

    async def close(self) -> None:
        """Release the revocation store."""
        await self.store.close()
        logger.info("Bearer token service closed")
