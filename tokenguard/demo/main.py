"""
tokenguard Demo Application

This demo walks one session through its whole lifecycle against the
in-memory store:
- Token pair issuance after login
- Access token validation
- Access-only and full rotation
- Refresh replay detection
- Logout everywhere
"""

import asyncio
import logging
import secrets
import sys

from tokenguard.core.config import TokenConfig
from tokenguard.core.context import RequestContext
from tokenguard.core.types import AuthType, Principal
from tokenguard.token.service import BearerTokenService


def _request(access_ip: str, access_token: str = None) -> RequestContext:
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    return RequestContext(access_ip=access_ip, access_url="/api/profile", method="GET", headers=headers)


async def run_demo() -> int:
    """Run the demo; returns a process exit code."""
    print("tokenguard Demo Application")
    print("=" * 50)
    print()

    config = TokenConfig(
        access_secret=secrets.token_urlsafe(64),
        refresh_secret=secrets.token_urlsafe(64),
        access_expire_seconds=900,
        conflict_detection=True,
        access_server_tracking=True,
        access_server_check=True,
        app_name="demo",
    )

    try:
        service = BearerTokenService.new(config)
        print("✓ Created token service")
        print(f"  - App name: {config.app_name}")
        print(f"  - Access lifetime: {config.access_expiry}")
        print(f"  - Refresh lifetime: {config.refresh_expiry}")
        print(f"  - Conflict detection: {config.conflict_detection}")
        print()
    except ValueError as e:
        print(f"✗ Invalid configuration: {e}")
        return 1

    principal = Principal(
        username="alice",
        tenant_id="t1",
        auth_type=AuthType.USER,
        nickname="Alice",
        roles={"admin"},
        permissions={"sys:user:*"},
    )

    print("Step 1: Login")
    print("-" * 40)
    pair = await service.issue_access_and_refresh(principal, _request("10.0.0.1"))
    print("✓ Token pair issued")
    print(f"  - Access id: {pair.identity.access_id}")
    print(f"  - Refresh id: {pair.identity.refresh_id}")
    print(f"  - Expires in: {pair.expires_in}s")
    print()

    print("Step 2: Authenticated request")
    print("-" * 40)
    result = await service.parse_access(_request("10.0.0.1", pair.access_token))
    if not result.ok:
        print(f"✗ Validation failed: {result.error_code.value}")
        return 1
    print(f"✓ Authenticated as {result.principal.username}@{result.identity.tenant}")
    print(f"  - Roles: {', '.join(sorted(result.principal.roles))}")
    print()

    print("Step 3: Request from a new address")
    print("-" * 40)
    moved = await service.parse_access(_request("10.0.0.2", pair.access_token), pin_ip=True)
    print(f"✓ Pinned validation answered {moved.error_code.value} ({moved.message_key})")
    refreshed = await service.refresh_access_only(_request("10.0.0.2", pair.access_token))
    print(f"✓ Access token reissued, new access id {refreshed.identity.access_id}")
    print()

    print("Step 4: Full rotation")
    print("-" * 40)
    rotated = await service.refresh_access_and_refresh(pair.refresh_token, _request("10.0.0.2"))
    print(f"✓ Session rotated, new refresh id {rotated.identity.refresh_id}")
    replay = await service.refresh_access_and_refresh(pair.refresh_token, _request("10.0.0.3"))
    print(f"✓ Replayed refresh token rejected: {replay.error_code.value}")
    print()

    print("Step 5: Session listing")
    print("-" * 40)
    for record in await service.list_access_sessions("t1"):
        print(f"  - {record.username} {record.access_id} from {record.access_ip} "
              f"(login {record.login_ip})")
    print()

    print("Step 6: Logout everywhere")
    print("-" * 40)
    revoked = await service.revoke_all_refresh("t1", AuthType.USER, "alice")
    print(f"✓ Revoked refresh session {revoked.refresh_id if revoked else None}")
    denied = await service.parse_access(_request("10.0.0.2", rotated.tokens.access_token))
    print(f"✓ Old access token now answers {denied.error_code.value}")
    gone = await service.refresh_access_and_refresh(rotated.tokens.refresh_token, _request("10.0.0.2"))
    print(f"✓ Refresh now answers {gone.error_code.value}")
    print()

    await service.close()
    print("Demo completed successfully!")
    return 0


def main() -> None:
    """Console entry point."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(asyncio.run(run_demo()))
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
