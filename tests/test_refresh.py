"""
Tests for access-only and full token rotation.
"""

import asyncio
from datetime import timedelta

import pytest

from tokenguard.auth.errors import ErrorKind, StoreUnavailableError
from tokenguard.auth.types import TokenClaims
from tokenguard.core.config import TokenConfig
from tokenguard.core.types import AuthType, Principal
from tokenguard.store.memory import MemoryRevocationStore
from tokenguard.token.service import BearerTokenService
from tokenguard.token.types import AccessTokenRecord

from .conftest import ACCESS_SECRET, REFRESH_SECRET


class TestFullRotation:
    """refresh_access_and_refresh"""

    @pytest.mark.asyncio
    async def test_alice_session_lifecycle(self, service, make_ctx):
        alice = Principal(username="alice", tenant_id="t1", conflict=True)
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        a1, r1 = pair.identity.access_id, pair.identity.refresh_id

        rotated = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())
        assert rotated.ok
        a2, r2 = rotated.identity.access_id, rotated.identity.refresh_id
        assert a2 != a1 and r2 != r1
        assert rotated.tokens.refresh_token != pair.refresh_token

        replay = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())
        assert replay.error_code is ErrorKind.CONFLICT
        assert replay.message_key == "auth.refresh.changed"

        old_access = await service.parse_access(make_ctx(token=pair.access_token))
        assert old_access.error_code is ErrorKind.DENIED

        new_access = await service.parse_access(make_ctx(token=rotated.tokens.access_token))
        assert new_access.ok
        assert new_access.identity.refresh_id == r2

    @pytest.mark.asyncio
    async def test_concurrent_rotation_has_one_winner(self, service, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())

        results = await asyncio.gather(
            service.refresh_access_and_refresh(pair.refresh_token, make_ctx(access_ip="10.0.0.2")),
            service.refresh_access_and_refresh(pair.refresh_token, make_ctx(access_ip="10.0.0.3")),
        )

        assert sorted(result.ok for result in results) == [False, True]
        loser = next(result for result in results if not result.ok)
        assert loser.error_code is ErrorKind.CONFLICT
        assert len(await service.list_refresh_sessions("t1")) == 1

    @pytest.mark.asyncio
    async def test_rotation_race_lost_at_compare_and_swap(self, service, store, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        original = store.replace_if_unchanged

        async def concurrent_writer(key, expected, value, ttl):
            # Another instance rotates between our read and our swap
            await store.put_with_expiry(key, value.replace("refresh_id", "refresh_id_other", 1), ttl)
            return await original(key, expected, value, ttl)

        store.replace_if_unchanged = concurrent_writer
        ctx = make_ctx()
        result = await service.refresh_access_and_refresh(pair.refresh_token, ctx)

        assert result.error_code is ErrorKind.CONFLICT
        assert not ctx.authenticated
        sessions = await service.list_access_sessions("t1")
        assert [record.access_id for record in sessions] == [pair.identity.access_id]

    @pytest.mark.asyncio
    async def test_store_failure_during_swap_keeps_session(self, service, store, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        original = store.replace_if_unchanged
        failures = []

        async def failing_once(key, expected, value, ttl):
            if not failures:
                failures.append(key)
                raise StoreUnavailableError("connection reset")
            return await original(key, expected, value, ttl)

        store.replace_if_unchanged = failing_once
        ctx = make_ctx()
        with pytest.raises(StoreUnavailableError):
            await service.refresh_access_and_refresh(pair.refresh_token, ctx)
        assert not ctx.authenticated

        retried = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())
        assert retried.ok
        assert (await service.parse_access(make_ctx(token=retried.tokens.access_token))).ok

    @pytest.mark.asyncio
    async def test_without_conflict_detection_replays_succeed(self, make_ctx):
        config = TokenConfig(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET,
                             access_server_tracking=True)
        service = BearerTokenService.new(config, MemoryRevocationStore())
        bob = Principal(username="bob", tenant_id="t1")
        pair = await service.issue_access_and_refresh(bob, make_ctx())

        first = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())
        second = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())

        assert first.ok and second.ok
        assert first.identity.refresh_id != second.identity.refresh_id

    @pytest.mark.asyncio
    async def test_concurrent_rotation_without_conflict_detection(self, make_ctx):
        config = TokenConfig(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)
        service = BearerTokenService.new(config, MemoryRevocationStore())
        pair = await service.issue_access_and_refresh(Principal(username="bob"), make_ctx())

        results = await asyncio.gather(*[
            service.refresh_access_and_refresh(pair.refresh_token, make_ctx()) for _ in range(3)
        ])
        assert all(result.ok for result in results)

    @pytest.mark.asyncio
    async def test_no_session_after_logout_everywhere(self, service, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        await service.revoke_all_refresh("t1", AuthType.USER, "alice")

        result = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())
        assert result.error_code is ErrorKind.NO_SESSION

        denied = await service.parse_access(make_ctx(token=pair.access_token))
        assert denied.error_code is ErrorKind.DENIED

    @pytest.mark.asyncio
    async def test_login_address_survives_rotation(self, service, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx(access_ip="10.0.0.1"))
        rotated = await service.refresh_access_and_refresh(pair.refresh_token, make_ctx(access_ip="10.0.0.7"))

        [record] = await service.list_access_sessions("t1")
        assert record.access_id == rotated.identity.access_id
        assert record.login_ip == "10.0.0.1"
        assert record.access_ip == "10.0.0.7"

    @pytest.mark.asyncio
    async def test_principal_is_restored_from_record(self, service, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        ctx = make_ctx()
        rotated = await service.refresh_access_and_refresh(pair.refresh_token, ctx)

        assert rotated.principal.roles == alice.roles
        assert rotated.principal.user_properties == alice.user_properties
        assert ctx.principal.username == "alice"

        claims = service.validator.decode(rotated.tokens.access_token)
        assert claims.permissions == sorted(alice.permissions)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token, kind", [
        (None, ErrorKind.NO_TOKEN),
        ("", ErrorKind.NO_TOKEN),
        ("garbage", ErrorKind.MALFORMED),
    ])
    async def test_unusable_refresh_tokens(self, service, make_ctx, token, kind):
        result = await service.refresh_access_and_refresh(token, make_ctx())
        assert result.error_code is kind

    @pytest.mark.asyncio
    async def test_access_token_cannot_rotate(self, service, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        result = await service.refresh_access_and_refresh(pair.access_token, make_ctx())
        assert result.error_code is ErrorKind.INVALID

    @pytest.mark.asyncio
    async def test_expired_refresh_token(self, service, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx())
        claims = TokenClaims.for_refresh(alice, pair.identity, True)
        expired = service.codec.encode(claims, timedelta(seconds=-5), REFRESH_SECRET)

        result = await service.refresh_access_and_refresh(expired, make_ctx())
        assert result.error_code is ErrorKind.EXPIRED


class TestAccessOnlyRotation:
    """refresh_access_only"""

    @pytest.mark.asyncio
    async def test_reissues_access_token(self, service, store, alice, make_ctx):
        pair = await service.issue_access_and_refresh(alice, make_ctx(access_ip="10.0.0.1"))

        ctx = make_ctx(access_ip="10.0.0.2", token=pair.access_token)
        result = await service.refresh_access_only(ctx)

        assert result.ok
        assert result.tokens.refresh_token is None
        assert result.identity.access_id != pair.identity.access_id
        assert result.identity.refresh_id == pair.identity.refresh_id
        assert not await store.exists(service.issuer.access_key(pair.identity))

        record = AccessTokenRecord.from_json(await store.get(service.issuer.access_key(result.identity)))
        assert record.login_ip == "10.0.0.1"
        assert record.access_ip == "10.0.0.2"

        claims = service.validator.decode(result.tokens.access_token)
        assert claims.access_ip == "10.0.0.2"

        # refresh token untouched
        assert (await service.refresh_access_and_refresh(pair.refresh_token, make_ctx())).ok

    @pytest.mark.asyncio
    async def test_expired_access_token_can_be_refreshed(self, service, alice, make_ctx):
        issued = await service.issue_access(alice, make_ctx())
        claims = TokenClaims.for_access(alice, issued.identity, "10.0.0.1", True)
        expired = service.codec.encode(claims, timedelta(seconds=-5), ACCESS_SECRET)

        result = await service.refresh_access_only(make_ctx(token=expired))
        assert result.ok
        assert (await service.parse_access(make_ctx(token=result.tokens.access_token))).ok

    @pytest.mark.asyncio
    async def test_revoked_access_token_is_denied(self, service, alice, make_ctx):
        issued = await service.issue_access(alice, make_ctx())
        await service.revoke_access("t1", AuthType.USER, "alice", issued.identity.access_id)

        result = await service.refresh_access_only(make_ctx(token=issued.access_token))
        assert result.error_code is ErrorKind.DENIED

    @pytest.mark.asyncio
    async def test_forged_access_token_is_invalid(self, service, alice, make_ctx):
        issued = await service.issue_access(alice, make_ctx())
        claims = TokenClaims.for_access(alice, issued.identity, "10.0.0.1", True)
        forged = service.codec.encode(claims, timedelta(minutes=5), REFRESH_SECRET)

        result = await service.refresh_access_only(make_ctx(token=forged))
        assert result.error_code is ErrorKind.INVALID

    @pytest.mark.asyncio
    async def test_no_token(self, service, make_ctx):
        result = await service.refresh_access_only(make_ctx())
        assert result.error_code is ErrorKind.NO_TOKEN
