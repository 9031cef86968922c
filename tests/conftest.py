"""
Shared fixtures for tokenguard tests.
"""

import pytest

from tokenguard.core.config import TokenConfig
from tokenguard.core.context import RequestContext
from tokenguard.core.types import AuthType, Principal
from tokenguard.store.memory import MemoryRevocationStore
from tokenguard.token.service import BearerTokenService


# HS512 wants keys of at least 64 bytes
ACCESS_SECRET = "access-secret-for-tests-0123456789-abcdefghijklmnopqrstuvwxyz-ABCDEFGHIJ"
REFRESH_SECRET = "refresh-secret-for-tests-9876543210-zyxwvutsrqponmlkjihgfedcba-JIHGFEDCBA"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config():
    """Token configuration with every server-side check enabled"""
    return TokenConfig(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        conflict_detection=True,
        access_server_tracking=True,
        access_server_check=True,
        app_name="test",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryRevocationStore(clock=clock)


@pytest.fixture
def service(config, store):
    return BearerTokenService.new(config, store)


@pytest.fixture
def alice():
    return Principal(
        username="alice",
        tenant_id="t1",
        auth_type=AuthType.USER,
        user_id=42,
        user_code="U042",
        nickname="Alice",
        dept_id=7,
        dept_code="R&D",
        dept_name="Research",
        cluster_id=1,
        cluster_level=2,
        cluster_name="east",
        roles={"admin", "auditor"},
        permissions={"sys:user:*", "sys:role:list"},
        user_properties={"theme": "dark"},
    )


@pytest.fixture
def make_ctx():
    """Factory for request contexts carrying an optional bearer token"""
    def factory(access_ip="10.0.0.1", token=None, cookies=None, url="/api/profile", body=None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return RequestContext(
            access_ip=access_ip,
            access_url=url,
            method="GET",
            headers=headers,
            cookies=cookies or {},
            body=body,
        )
    return factory
