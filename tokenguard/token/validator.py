"""
Access token validation for tokenguard.
"""

import logging
from typing import Optional

from ..auth.claims import ClaimsCodec
from ..auth.errors import AccessDeniedError, AuthError, IPChangedError, NoTokenError
from ..auth.types import AuthResult, TokenClaims, TokenUse
from ..common.utils import is_blank
from ..core.config import TokenConfig
from ..core.context import RequestContext
from ..store.types import RevocationStore
from .keys import SessionKeys

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def strip_bearer(value: Optional[str]) -> Optional[str]:
    """Remove an optional ``Bearer `` prefix; blank values become None."""
    if is_blank(value):
        return None
    value = value.strip()
    if value.startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX):].strip()
    return value or None


class TokenValidator:
    """Extracts and verifies access tokens from inbound requests."""

    def __init__(self, config: TokenConfig, store: Optional[RevocationStore] = None,
                 codec: Optional[ClaimsCodec] = None, keys: Optional[SessionKeys] = None):
        self.config = config
        self.store = store
        self.codec = codec or ClaimsCodec(
            algorithm=config.algorithm,
            leeway=config.leeway_seconds,
            extensions=config.claim_extensions,
        )
        self.keys = keys or SessionKeys(config.app_name)

    def extract(self, ctx: RequestContext) -> Optional[str]:
        """Read the raw access token from the configured cookie or header."""
        if self.config.cookie_mode:
            return strip_bearer(ctx.cookie(self.config.token_name))
        return strip_bearer(ctx.header(self.config.token_name))

    async def parse_access(self, ctx: RequestContext, pin_ip: bool = False) -> AuthResult:
        """
        Validate the access token carried by the current request.

        Args:
            ctx: Current request context; receives the principal on success
            pin_ip: Reject conflict-flagged tokens presented from another address

        Returns:
            AuthResult; a failure carries the error kind, never raises for
            authentication outcomes
        """
        raw = self.extract(ctx)
        if raw is None:
            logger.debug(f"No access token on request {ctx.request_id}")
            return AuthResult.from_error(NoTokenError())
        return await self.parse_access_token(raw, ctx, pin_ip=pin_ip)

    async def parse_access_token(self, raw: str, ctx: RequestContext,
                                 pin_ip: bool = False) -> AuthResult:
        """Validate a raw access token string against the current request."""
        token = strip_bearer(raw)
        if token is None:
            return AuthResult.from_error(NoTokenError())
        try:
            claims = self.decode(token)
            self._check_ip(claims, ctx, pin_ip)
            await self.check_server_record(claims)
        except AuthError as e:
            logger.warning(f"Access token rejected on request {ctx.request_id}: "
                           f"{e.error_code.value} ({e.message})")
            return AuthResult.from_error(e)

        principal = claims.to_principal()
        identity = claims.identity()
        ctx.publish(principal, identity)
        logger.debug(f"Access token accepted for {principal.username}@{identity.tenant}")
        return AuthResult.success(principal=principal, identity=identity, claims=claims)

    def decode(self, token: str, verify_exp: bool = True) -> TokenClaims:
        """Verify an access token signature (and optionally expiry); raises AuthError."""
        return self.codec.decode(token, self.config.access_secret,
                                 expected_use=TokenUse.ACCESS, verify_exp=verify_exp)

    def _check_ip(self, claims: TokenClaims, ctx: RequestContext, pin_ip: bool) -> None:
        if pin_ip and claims.conflict and claims.access_ip != ctx.access_ip:
            raise IPChangedError(details={
                'issued_ip': claims.access_ip,
                'access_ip': ctx.access_ip,
            })

    async def check_server_record(self, claims: TokenClaims) -> None:
        """Raise AccessDeniedError when server checking is on and the record is gone."""
        if not self.config.access_server_check or self.store is None:
            return
        key = self.keys.access_key(claims.tenant_id, claims.auth_type,
                                   claims.username, claims.access_id)
        if not await self.store.exists(key):
            raise AccessDeniedError(details={'access_id': claims.access_id})
