"""
Token rotation for tokenguard.

A session moves ACTIVE -> ROTATING -> ACTIVE' on a successful refresh, or
ends REVOKED (no refresh record) / EXPIRED (token past its ``exp``).
"""

import logging
from typing import Optional

from ..auth.errors import (
    AuthError,
    NoSessionError,
    NoTokenError,
    RefreshConflictError,
    StoreUnavailableError,
)
from ..auth.types import AuthResult, TokenPair, TokenUse
from ..common.utils import generate_id
from ..core.context import RequestContext
from ..core.types import SessionIdentity
from .issuer import TokenIssuer
from .types import AccessTokenRecord, RefreshTokenRecord
from .validator import TokenValidator, strip_bearer

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """
    Rotates access tokens, or access + refresh tokens, for live sessions.

    With conflict detection on, the refresh record is replaced by a
    compare-and-swap on its stored value, so of two rotations racing on
    the same refresh token exactly one wins and the other gets CONFLICT.
    """

    def __init__(self, issuer: TokenIssuer, validator: TokenValidator):
        self.issuer = issuer
        self.validator = validator
        self.config = issuer.config
        self.store = issuer.store
        self.codec = issuer.codec
        self.keys = issuer.keys

    async def refresh_access_only(self, ctx: RequestContext) -> AuthResult:
        """
        Reissue the current access token with a new access id.

        The token's signature must verify but it may already be expired.
        The refresh token is left untouched.
        """
        raw = self.validator.extract(ctx)
        if raw is None:
            return AuthResult.from_error(NoTokenError())
        try:
            claims = self.validator.decode(raw, verify_exp=False)
            await self.validator.check_server_record(claims)
        except AuthError as e:
            logger.warning(f"Access refresh rejected on request {ctx.request_id}: {e.error_code.value}")
            return AuthResult.from_error(e)

        old_key = self.keys.access_key(claims.tenant_id, claims.auth_type,
                                       claims.username, claims.access_id)
        login_ip, login_time = None, None
        if self.config.access_server_tracking:
            stored = await self.store.get(old_key)
            if stored is not None:
                old_record = AccessTokenRecord.from_json(stored)
                login_ip, login_time = old_record.login_ip, old_record.login_time
            await self.store.delete(old_key)

        principal = claims.to_principal()
        identity = SessionIdentity.for_principal(principal, generate_id(), claims.refresh_id)
        issued = await self.issuer.issue_access(principal, ctx, identity,
                                                login_ip=login_ip, login_time=login_time)

        logger.info(f"Access token rotated for {principal.username}@{identity.tenant} "
                    f"({claims.access_id} -> {identity.access_id})")
        tokens = TokenPair(
            access_token=issued.access_token,
            refresh_token=None,
            identity=identity,
            issued_at=issued.issued_at,
            access_expires_at=issued.expires_at,
        )
        return AuthResult.success(principal=principal, identity=identity, tokens=tokens)

    async def refresh_access_and_refresh(self, refresh_token: Optional[str],
                                         ctx: RequestContext) -> AuthResult:
        """
        Rotate both tokens of a session using its refresh token.

        Returns:
            AuthResult carrying the new TokenPair; NO_SESSION when the refresh
            record is gone, CONFLICT when the token was already rotated

        Raises:
            StoreUnavailableError: If the store fails; the presented refresh
                token stays valid for a retry
        """
        token = strip_bearer(refresh_token)
        if token is None:
            return AuthResult.from_error(NoTokenError("No refresh token presented"))
        try:
            claims = self.codec.decode(token, self.config.refresh_secret,
                                       expected_use=TokenUse.REFRESH)
        except AuthError as e:
            logger.warning(f"Refresh token rejected on request {ctx.request_id}: {e.error_code.value}")
            return AuthResult.from_error(e)

        key = self.keys.refresh_key(claims.tenant_id, claims.auth_type, claims.username)
        stored = await self.store.get(key)
        if stored is None:
            logger.warning(f"No refresh session for {claims.username}")
            return AuthResult.from_error(NoSessionError())

        record = RefreshTokenRecord.from_json(stored)
        if claims.conflict and claims.refresh_id != record.refresh_id:
            logger.warning(f"Refresh token replay for {claims.username} "
                           f"(presented {claims.refresh_id}, current {record.refresh_id})")
            return AuthResult.from_error(RefreshConflictError())

        principal = self.issuer.resolve(record.principal)
        identity = SessionIdentity.for_principal(principal, generate_id(), generate_id())
        new_token, new_record = self.issuer.sign_refresh(
            principal, identity,
            login_ip=record.login_ip,
            login_time=record.login_time,
        )

        # Write the new access session before the refresh record moves
        issued = await self.issuer.issue_access(principal, ctx, identity,
                                                login_ip=record.login_ip,
                                                login_time=record.login_time)
        try:
            if claims.conflict:
                replaced = await self.store.replace_if_unchanged(
                    key, stored, new_record.to_json(), self.config.refresh_expiry)
            else:
                await self.store.put_with_expiry(key, new_record.to_json(), self.config.refresh_expiry)
                replaced = True
        except StoreUnavailableError:
            self._withdraw(ctx)
            raise
        if not replaced:
            logger.warning(f"Lost refresh rotation race for {claims.username} "
                           f"(refresh_id={claims.refresh_id})")
            self._withdraw(ctx)
            if self.config.access_server_tracking:
                await self.store.delete(self.issuer.access_key(identity))
            return AuthResult.from_error(RefreshConflictError())

        await self.store.delete(self.keys.access_key(
            record.tenant_id, record.auth_type, record.username, record.access_id))

        logger.info(f"Session rotated for {principal.username}@{identity.tenant} "
                    f"(refresh_id {record.refresh_id} -> {identity.refresh_id})")
        tokens = TokenPair(
            access_token=issued.access_token,
            refresh_token=new_token,
            identity=identity,
            issued_at=issued.issued_at,
            access_expires_at=issued.expires_at,
            refresh_expires_at=new_record.expires_at,
        )
        return AuthResult.success(principal=principal, identity=identity,
                                  tokens=tokens, record=new_record)

    def _withdraw(self, ctx: RequestContext) -> None:
        ctx.clear()
        if self.config.cookie_mode:
            ctx.drop_cookie(self.config.token_name)
