"""
JWT claims codec for tokenguard.

Access and refresh tokens are HMAC-signed JWS compact strings. The two token
kinds are signed with independent secrets, so a leaked refresh secret cannot
be used to forge access tokens.
"""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

import jwt

from ..common.utils import drop_none, from_timestamp, get_current_time, to_timestamp
from ..core.types import AuthType
from .errors import ExpiredTokenError, InvalidTokenError, MalformedTokenError
from .types import TokenClaims, TokenUse

logger = logging.getLogger(__name__)


CLAIM_USE = "use"
CLAIM_AUTH_TYPE = "auth_type"
CLAIM_ACCESS_ID = "aid"
CLAIM_REFRESH_ID = "rid"
CLAIM_ACCESS_IP = "aip"
CLAIM_CONFLICT = "cfl"
CLAIM_TENANT_ID = "tenant"
CLAIM_USERNAME = "sub"
CLAIM_USER_ID = "uid"
CLAIM_USER_CODE = "ucode"
CLAIM_NICKNAME = "nick"
CLAIM_USER_PROPERTIES = "uprops"
CLAIM_ROLES = "roles"
CLAIM_PERMISSIONS = "perms"
CLAIM_DEPT_ID = "did"
CLAIM_DEPT_CODE = "dcode"
CLAIM_DEPT_NAME = "dname"
CLAIM_CLUSTER_ID = "cid"
CLAIM_CLUSTER_LEVEL = "clevel"
CLAIM_CLUSTER_NAME = "cname"

_RESERVED = {
    CLAIM_USE, CLAIM_AUTH_TYPE, CLAIM_ACCESS_ID, CLAIM_REFRESH_ID, CLAIM_ACCESS_IP,
    CLAIM_CONFLICT, CLAIM_TENANT_ID, CLAIM_USERNAME, CLAIM_USER_ID, CLAIM_USER_CODE,
    CLAIM_NICKNAME, CLAIM_USER_PROPERTIES, CLAIM_ROLES, CLAIM_PERMISSIONS,
    CLAIM_DEPT_ID, CLAIM_DEPT_CODE, CLAIM_DEPT_NAME, CLAIM_CLUSTER_ID,
    CLAIM_CLUSTER_LEVEL, CLAIM_CLUSTER_NAME, "iat", "exp", "jti",
}


class ClaimExtension(ABC):
    """Adds deployment-specific claims to tokens and reads them back."""

    @abstractmethod
    def additional_claims(self, claims: TokenClaims) -> Dict[str, Any]:
        """Return extra claims to embed; keys must not collide with built-in claims."""
        pass

    def parse_claims(self, payload: Dict[str, Any], claims: TokenClaims) -> None:
        """Copy extension claims from a verified payload into ``claims.extra``."""
        for key in self.additional_claims(claims):
            if key in payload:
                claims.extra[key] = payload[key]


_CLAIM_EXTENSIONS: Dict[str, ClaimExtension] = {}


def register_claim_extension(name: str, extension: ClaimExtension) -> None:
    """Register a claim extension under a configuration name."""
    _CLAIM_EXTENSIONS[name.lower()] = extension


def get_claim_extension(name: str) -> ClaimExtension:
    extension = _CLAIM_EXTENSIONS.get(name.lower())
    if extension is None:
        raise ValueError(f"Unknown claim extension: {name}")
    return extension


def available_claim_extensions() -> List[str]:
    return list(_CLAIM_EXTENSIONS.keys())


class ClaimsCodec:
    """Encodes/signs and decodes/verifies token claim sets."""

    def __init__(self, algorithm: str = "HS512", leeway: int = 0,
                 extensions: Iterable[str] = ()):
        self.algorithm = algorithm
        self.leeway = leeway
        self.extensions = [get_claim_extension(name) for name in extensions]

    def encode(self, claims: TokenClaims, ttl: timedelta, secret: str) -> str:
        """Sign ``claims`` valid for ``ttl`` and return the compact token."""
        now = get_current_time()
        claims.issued_at = now
        claims.expires_at = now + ttl
        payload = self._to_payload(claims)
        for extension in self.extensions:
            extra = extension.additional_claims(claims)
            clash = _RESERVED.intersection(extra)
            if clash:
                raise ValueError(f"Claim extension overrides built-in claims: {sorted(clash)}")
            payload.update(extra)
        token = jwt.encode(payload, secret, algorithm=self.algorithm)
        if isinstance(token, bytes):
            token = token.decode('utf-8')
        return token

    def decode(self, token: str, secret: str, expected_use: TokenUse = TokenUse.ACCESS,
               verify_exp: bool = True) -> TokenClaims:
        """
        Verify ``token`` and return its claims.

        Raises:
            MalformedTokenError: not a decodable JWS or mandatory claims missing
            ExpiredTokenError: signature valid but ``exp`` has passed
            InvalidTokenError: bad signature, wrong secret or wrong token use
        """
        if not token or token.count(".") != 2:
            raise MalformedTokenError("Token must have three segments")
        try:
            jwt.get_unverified_header(token)
        except jwt.DecodeError as e:
            raise MalformedTokenError(f"Token header is not decodable: {e}")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"verify_exp": verify_exp, "require": ["iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.MissingRequiredClaimError as e:
            raise MalformedTokenError(f"Token is missing claims: {e}")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Token verification failed: {e}")

        claims = self._from_payload(payload)
        if claims.token_use is not expected_use:
            raise InvalidTokenError(f"Expected {expected_use.value} token, got {claims.token_use.value}")
        for extension in self.extensions:
            extension.parse_claims(payload, claims)
        return claims

    def _to_payload(self, claims: TokenClaims) -> Dict[str, Any]:
        payload = {
            CLAIM_USE: claims.token_use.value,
            CLAIM_AUTH_TYPE: claims.auth_type.value,
            CLAIM_USERNAME: claims.username,
            CLAIM_TENANT_ID: claims.tenant_id,
            CLAIM_CONFLICT: bool(claims.conflict),
            "iat": to_timestamp(claims.issued_at),
            "exp": to_timestamp(claims.expires_at),
        }
        if claims.token_use is TokenUse.REFRESH:
            payload[CLAIM_REFRESH_ID] = claims.refresh_id
            payload["jti"] = claims.refresh_id
            return drop_none(payload)

        payload.update({
            CLAIM_ACCESS_ID: claims.access_id,
            CLAIM_REFRESH_ID: claims.refresh_id,
            CLAIM_ACCESS_IP: claims.access_ip,
            CLAIM_USER_ID: claims.user_id,
            CLAIM_USER_CODE: claims.user_code,
            CLAIM_NICKNAME: claims.nickname,
            CLAIM_USER_PROPERTIES: claims.user_properties or None,
            CLAIM_ROLES: list(claims.roles),
            CLAIM_PERMISSIONS: list(claims.permissions),
            CLAIM_DEPT_ID: claims.dept_id,
            CLAIM_DEPT_CODE: claims.dept_code,
            CLAIM_DEPT_NAME: claims.dept_name,
            CLAIM_CLUSTER_ID: claims.cluster_id,
            CLAIM_CLUSTER_LEVEL: claims.cluster_level,
            CLAIM_CLUSTER_NAME: claims.cluster_name,
            "jti": claims.access_id,
        })
        return drop_none(payload)

    def _from_payload(self, payload: Dict[str, Any]) -> TokenClaims:
        try:
            token_use = TokenUse(payload[CLAIM_USE])
            auth_type = AuthType.parse(payload[CLAIM_AUTH_TYPE])
            username = payload[CLAIM_USERNAME]
        except (KeyError, ValueError) as e:
            raise MalformedTokenError(f"Token claims are incomplete: {e}")

        claims = TokenClaims(
            token_use=token_use,
            auth_type=auth_type,
            username=username,
            tenant_id=payload.get(CLAIM_TENANT_ID),
            access_id=payload.get(CLAIM_ACCESS_ID),
            refresh_id=payload.get(CLAIM_REFRESH_ID),
            access_ip=payload.get(CLAIM_ACCESS_IP),
            conflict=bool(payload.get(CLAIM_CONFLICT, False)),
            user_id=payload.get(CLAIM_USER_ID),
            user_code=payload.get(CLAIM_USER_CODE),
            nickname=payload.get(CLAIM_NICKNAME),
            user_properties=payload.get(CLAIM_USER_PROPERTIES) or {},
            roles=list(payload.get(CLAIM_ROLES) or []),
            permissions=list(payload.get(CLAIM_PERMISSIONS) or []),
            dept_id=payload.get(CLAIM_DEPT_ID),
            dept_code=payload.get(CLAIM_DEPT_CODE),
            dept_name=payload.get(CLAIM_DEPT_NAME),
            cluster_id=payload.get(CLAIM_CLUSTER_ID),
            cluster_level=payload.get(CLAIM_CLUSTER_LEVEL),
            cluster_name=payload.get(CLAIM_CLUSTER_NAME),
            issued_at=from_timestamp(payload.get("iat")),
            expires_at=from_timestamp(payload.get("exp")),
        )
        if token_use is TokenUse.ACCESS and not claims.access_id:
            raise MalformedTokenError("Access token has no access id")
        if token_use is TokenUse.REFRESH and not claims.refresh_id:
            raise MalformedTokenError("Refresh token has no refresh id")
        return claims
