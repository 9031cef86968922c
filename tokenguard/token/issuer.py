"""
Token issuance for tokenguard.

Signs access tokens (and optionally refresh tokens) for an already
authenticated principal and records the resulting session server-side.
"""

import dataclasses
import logging
from datetime import datetime
from typing import Optional, Tuple

from ..auth.claims import ClaimsCodec
from ..auth.types import IssuedToken, TokenClaims, TokenPair
from ..common.utils import generate_id
from ..core.config import TokenConfig
from ..core.context import RequestContext
from ..core.types import Principal, SessionIdentity
from ..store.types import RevocationStore
from .keys import SessionKeys
from .types import AccessTokenRecord, RefreshTokenRecord

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Issues access and refresh tokens and writes their session records."""

    def __init__(self, config: TokenConfig, store: RevocationStore,
                 codec: Optional[ClaimsCodec] = None, keys: Optional[SessionKeys] = None):
        self.config = config
        self.store = store
        self.codec = codec or ClaimsCodec(
            algorithm=config.algorithm,
            leeway=config.leeway_seconds,
            extensions=config.claim_extensions,
        )
        self.keys = keys or SessionKeys(config.app_name)

    def resolve(self, principal: Principal) -> Principal:
        """
        The principal as it will be carried in its tokens.

        An unset ``conflict`` flag is filled from the deployment default, so
        the principal published at issuance equals the one parsed back later.
        """
        if principal.conflict is not None:
            return principal
        return dataclasses.replace(principal, conflict=self.config.conflict_detection)

    async def issue_access(self, principal: Principal, ctx: RequestContext,
                           identity: Optional[SessionIdentity] = None,
                           login_ip: Optional[str] = None,
                           login_time: Optional[datetime] = None) -> IssuedToken:
        """
        Sign a new access token for ``principal``.

        Args:
            principal: Already authenticated principal
            ctx: Current request context; receives the principal and, in
                cookie mode, the token cookie
            identity: Session identity to reuse; a fresh access id is
                allocated when omitted
            login_ip: Original login address kept across rotations
            login_time: Original login time kept across rotations

        Returns:
            IssuedToken with the compact token and its identity
        """
        principal = self.resolve(principal)
        if identity is None:
            identity = SessionIdentity.for_principal(principal, generate_id())

        claims = TokenClaims.for_access(principal, identity, ctx.access_ip, principal.conflict)
        token = self.codec.encode(claims, self.config.access_expiry, self.config.access_secret)

        ctx.publish(principal, identity)
        if self.config.cookie_mode:
            ctx.set_cookie(self.config.token_name, token,
                           path=self.config.cookie_path,
                           max_age=self.config.access_expire_seconds)

        if self.config.access_server_tracking:
            record = AccessTokenRecord(
                access_id=identity.access_id,
                tenant_id=principal.tenant_id,
                auth_type=principal.auth_type,
                username=principal.username,
                user_id=principal.user_id,
                nickname=principal.nickname,
                issued_at=claims.issued_at,
                expires_at=claims.expires_at,
                login_ip=login_ip if login_ip is not None else ctx.access_ip,
                login_time=login_time or ctx.access_time,
                access_ip=ctx.access_ip,
                access_time=ctx.access_time,
                cluster_name=principal.cluster_name or self.config.cluster_name,
            )
            key = self.keys.access_key(identity.tenant_id, identity.auth_type,
                                       identity.username, identity.access_id)
            await self.store.put_with_expiry(key, record.to_json(), self.config.access_expiry)

        logger.debug(f"Access token issued for {principal.username}@{identity.tenant} "
                     f"(access_id={identity.access_id})")
        return IssuedToken(
            access_token=token,
            identity=identity,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
        )

    async def issue_access_and_refresh(self, principal: Principal, ctx: RequestContext,
                                       identity: Optional[SessionIdentity] = None) -> TokenPair:
        """
        Sign an access token and a refresh token for ``principal``.

        The refresh record is overwritten unconditionally, so the newest
        login becomes the principal's only refresh session.
        """
        principal = self.resolve(principal)
        if identity is None or identity.refresh_id is None:
            identity = SessionIdentity.for_principal(
                principal,
                identity.access_id if identity else generate_id(),
                generate_id(),
            )
        issued = await self.issue_access(principal, ctx, identity)
        refresh_token, record = self.sign_refresh(
            principal, identity,
            login_ip=ctx.access_ip,
            login_time=ctx.access_time,
        )
        await self.store.put_with_expiry(self.refresh_key(identity), record.to_json(),
                                         self.config.refresh_expiry)

        logger.info(f"Issued token pair for {principal.username}@{identity.tenant} "
                    f"(access_id={identity.access_id}, refresh_id={identity.refresh_id})")
        return TokenPair(
            access_token=issued.access_token,
            refresh_token=refresh_token,
            identity=identity,
            issued_at=issued.issued_at,
            access_expires_at=issued.expires_at,
            refresh_expires_at=record.expires_at,
        )

    def sign_refresh(self, principal: Principal, identity: SessionIdentity,
                     login_ip: Optional[str] = None,
                     login_time: Optional[datetime] = None) -> Tuple[str, RefreshTokenRecord]:
        """Sign a refresh token and build the record that backs it (not yet stored)."""
        principal = self.resolve(principal)
        claims = TokenClaims.for_refresh(principal, identity, principal.conflict)
        token = self.codec.encode(claims, self.config.refresh_expiry, self.config.refresh_secret)
        record = RefreshTokenRecord(
            refresh_id=identity.refresh_id,
            access_id=identity.access_id,
            principal=principal,
            conflict=principal.conflict,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
            login_ip=login_ip,
            login_time=login_time,
        )
        return token, record

    def refresh_key(self, identity: SessionIdentity) -> str:
        return self.keys.refresh_key(identity.tenant_id, identity.auth_type, identity.username)

    def access_key(self, identity: SessionIdentity) -> str:
        return self.keys.access_key(identity.tenant_id, identity.auth_type,
                                    identity.username, identity.access_id)
