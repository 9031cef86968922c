"""
Tests for the JWT claims codec.
"""

import base64
import dataclasses
from datetime import timedelta
from typing import Any, Dict

import jwt
import pytest

from tokenguard.auth.claims import (
    ClaimExtension,
    ClaimsCodec,
    available_claim_extensions,
    register_claim_extension,
)
from tokenguard.auth.errors import ExpiredTokenError, InvalidTokenError, MalformedTokenError
from tokenguard.auth.types import TokenClaims, TokenUse
from tokenguard.core.types import AuthType, Principal, SessionIdentity

from .conftest import ACCESS_SECRET, REFRESH_SECRET


def tamper(token: str) -> str:
    """Flip one bit of the signature."""
    header, payload, signature = token.split(".")
    raw = bytearray(base64.urlsafe_b64decode(signature + "=" * (-len(signature) % 4)))
    raw[0] ^= 0x01
    forged = base64.urlsafe_b64encode(bytes(raw)).rstrip(b"=").decode("ascii")
    return f"{header}.{payload}.{forged}"


@pytest.fixture
def codec():
    return ClaimsCodec()


@pytest.fixture
def identity(alice):
    return SessionIdentity.for_principal(alice, "a1", "r1")


def access_claims(principal: Principal, identity: SessionIdentity, conflict: bool = True) -> TokenClaims:
    return TokenClaims.for_access(principal, identity, "10.0.0.1", conflict)


class TestRoundTrip:
    """Encode then decode"""

    def test_access_claims_round_trip(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)
        claims = codec.decode(token, ACCESS_SECRET)

        assert claims.token_use is TokenUse.ACCESS
        assert claims.access_id == "a1"
        assert claims.refresh_id == "r1"
        assert claims.access_ip == "10.0.0.1"
        assert claims.conflict is True

        principal = claims.to_principal()
        assert principal.username == "alice"
        assert principal.tenant_id == "t1"
        assert principal.auth_type is AuthType.USER
        assert principal.user_id == 42
        assert principal.nickname == "Alice"
        assert principal.roles == {"admin", "auditor"}
        assert principal.permissions == {"sys:user:*", "sys:role:list"}
        assert principal.user_properties == {"theme": "dark"}
        assert principal.cluster_name == "east"

    def test_principal_survives_round_trip_unchanged(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)
        restored = codec.decode(token, ACCESS_SECRET).to_principal()

        assert restored == dataclasses.replace(alice, conflict=True)
        assert (restored.user_code, restored.dept_id, restored.dept_code) == ("U042", 7, "R&D")
        assert (restored.cluster_id, restored.cluster_level) == (1, 2)

    def test_header_is_hs512(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)
        header = jwt.get_unverified_header(token)
        assert header["alg"] == "HS512"
        assert token.count(".") == 2

    def test_refresh_claims_are_minimal(self, codec, alice, identity):
        claims = TokenClaims.for_refresh(alice, identity, conflict=False)
        token = codec.encode(claims, timedelta(days=1), REFRESH_SECRET)

        payload = jwt.decode(token, REFRESH_SECRET, algorithms=["HS512"])
        assert set(payload) <= {"use", "auth_type", "sub", "tenant", "cfl", "rid", "jti", "iat", "exp"}
        assert "roles" not in payload

        decoded = codec.decode(token, REFRESH_SECRET, expected_use=TokenUse.REFRESH)
        assert decoded.refresh_id == "r1"
        assert decoded.username == "alice"

    def test_expiry_is_set_from_ttl(self, codec, alice, identity):
        claims = access_claims(alice, identity)
        codec.encode(claims, timedelta(minutes=5), ACCESS_SECRET)
        assert claims.expires_at - claims.issued_at == timedelta(minutes=5)


class TestFailures:
    """Expired, invalid and malformed tokens are told apart"""

    def test_expired(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(seconds=-30), ACCESS_SECRET)
        with pytest.raises(ExpiredTokenError):
            codec.decode(token, ACCESS_SECRET)

    def test_expired_ignored_when_not_verifying_exp(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(seconds=-30), ACCESS_SECRET)
        claims = codec.decode(token, ACCESS_SECRET, verify_exp=False)
        assert claims.access_id == "a1"

    def test_tampered_signature_is_invalid(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)
        with pytest.raises(InvalidTokenError):
            codec.decode(tamper(token), ACCESS_SECRET)

    def test_tampered_and_expired_is_invalid(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(seconds=-30), ACCESS_SECRET)
        with pytest.raises(InvalidTokenError):
            codec.decode(tamper(token), ACCESS_SECRET)

    def test_wrong_secret_is_invalid(self, codec, alice, identity):
        token = codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)
        with pytest.raises(InvalidTokenError):
            codec.decode(token, REFRESH_SECRET)

    def test_wrong_token_use_is_invalid(self, codec, alice, identity):
        token = codec.encode(TokenClaims.for_refresh(alice, identity, True), timedelta(days=1), ACCESS_SECRET)
        with pytest.raises(InvalidTokenError):
            codec.decode(token, ACCESS_SECRET, expected_use=TokenUse.ACCESS)

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b", "a.b.c.d", "!!!.???.###"])
    def test_malformed(self, codec, token):
        with pytest.raises(MalformedTokenError):
            codec.decode(token, ACCESS_SECRET)

    def test_missing_issued_at_is_malformed(self, codec):
        token = jwt.encode({"use": "access", "auth_type": "user", "sub": "alice", "aid": "a1"},
                           ACCESS_SECRET, algorithm="HS512")
        with pytest.raises(MalformedTokenError):
            codec.decode(token, ACCESS_SECRET)

    def test_missing_access_id_is_malformed(self, codec):
        token = jwt.encode({"use": "access", "auth_type": "user", "sub": "alice", "iat": 1},
                           ACCESS_SECRET, algorithm="HS512")
        with pytest.raises(MalformedTokenError):
            codec.decode(token, ACCESS_SECRET, verify_exp=False)


class RegionExtension(ClaimExtension):
    def additional_claims(self, claims: TokenClaims) -> Dict[str, Any]:
        return {"region": "eu-west"}


class ClashingExtension(ClaimExtension):
    def additional_claims(self, claims: TokenClaims) -> Dict[str, Any]:
        return {"sub": "mallory"}


class TestClaimExtensions:
    """Registered extensions add and read back extra claims"""

    def test_extension_round_trip(self, alice, identity):
        register_claim_extension("region", RegionExtension())
        assert "region" in available_claim_extensions()

        codec = ClaimsCodec(extensions=["region"])
        token = codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)
        claims = codec.decode(token, ACCESS_SECRET)
        assert claims.extra == {"region": "eu-west"}

    def test_extension_cannot_override_builtin_claims(self, alice, identity):
        register_claim_extension("clash", ClashingExtension())
        codec = ClaimsCodec(extensions=["clash"])
        with pytest.raises(ValueError):
            codec.encode(access_claims(alice, identity), timedelta(minutes=5), ACCESS_SECRET)

    def test_unknown_extension(self):
        with pytest.raises(ValueError):
            ClaimsCodec(extensions=["does-not-exist"])
