"""
Configuration module for tokenguard.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from fnmatch import fnmatchcase
from typing import List, Optional
import os

from .types import TokenStoreMode


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on", "y")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class StoreConfig:
    """Revocation store backend settings"""
    backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_scan_count: int = 500
    socket_timeout: Optional[float] = 5.0


@dataclass
class RateLimitConfig:
    """Token bucket settings for the ``rate_limit`` middleware"""
    rate: int = 100
    window: timedelta = field(default_factory=lambda: timedelta(minutes=1))
    burst: int = 10
    cleanup_interval: float = 300.0  # seconds between sweeps of idle buckets


@dataclass
class RepeatGuardConfig:
    """Settings for the ``repeat_guard`` middleware"""
    interval_ms: int = 5000
    message: str = "repeated request"


@dataclass
class TokenConfig:
    """Configuration for bearer token issuance and validation"""
    access_secret: str = ""
    refresh_secret: str = ""
    access_expire_seconds: int = 3600
    refresh_expire_seconds: int = 604800
    conflict_detection: bool = False
    access_server_tracking: bool = False
    access_server_check: bool = False
    token_store: TokenStoreMode = TokenStoreMode.HEADER
    token_name: str = "Authorization"
    app_name: str = "tokenguard"
    cluster_name: Optional[str] = None
    algorithm: str = "HS512"
    leeway_seconds: int = 0
    cookie_path: str = "/"
    claim_extensions: List[str] = field(default_factory=list)
    middleware: List[str] = field(default_factory=lambda: ["authenticate"])
    ignore_urls: List[str] = field(default_factory=list)
    store: StoreConfig = field(default_factory=StoreConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    repeat_guard: RepeatGuardConfig = field(default_factory=RepeatGuardConfig)

    def __post_init__(self):
        if isinstance(self.token_store, str):
            try:
                self.token_store = TokenStoreMode(self.token_store.lower())
            except ValueError:
                raise ValueError(f"token_store must be 'header' or 'cookie', got {self.token_store!r}")

    @property
    def access_expiry(self) -> timedelta:
        return timedelta(seconds=self.access_expire_seconds)

    @property
    def refresh_expiry(self) -> timedelta:
        return timedelta(seconds=self.refresh_expire_seconds)

    @property
    def cookie_mode(self) -> bool:
        return self.token_store is TokenStoreMode.COOKIE

    def ignores(self, path: Optional[str]) -> bool:
        """True if ``path`` matches one of the shell-style ``ignore_urls`` patterns."""
        if not path:
            return False
        return any(fnmatchcase(path, pattern) for pattern in self.ignore_urls)

    @classmethod
    def from_env(cls) -> "TokenConfig":
        """Create configuration from environment variables"""
        return cls(
            access_secret=os.getenv("TOKENGUARD_ACCESS_SECRET", ""),
            refresh_secret=os.getenv("TOKENGUARD_REFRESH_SECRET", ""),
            access_expire_seconds=int(os.getenv("TOKENGUARD_ACCESS_EXPIRE_SECONDS", "3600")),
            refresh_expire_seconds=int(os.getenv("TOKENGUARD_REFRESH_EXPIRE_SECONDS", "604800")),
            conflict_detection=_env_bool("TOKENGUARD_CONFLICT_DETECTION", False),
            access_server_tracking=_env_bool("TOKENGUARD_ACCESS_SERVER_TRACKING", False),
            access_server_check=_env_bool("TOKENGUARD_ACCESS_SERVER_CHECK", False),
            token_store=os.getenv("TOKENGUARD_TOKEN_STORE", "header"),
            token_name=os.getenv("TOKENGUARD_TOKEN_NAME", "Authorization"),
            app_name=os.getenv("TOKENGUARD_APP_NAME", "tokenguard"),
            cluster_name=os.getenv("TOKENGUARD_CLUSTER_NAME"),
            claim_extensions=_env_list("TOKENGUARD_CLAIM_EXTENSIONS", []),
            middleware=_env_list("TOKENGUARD_MIDDLEWARE", ["authenticate"]),
            ignore_urls=_env_list("TOKENGUARD_IGNORE_URLS", []),
            store=StoreConfig(
                backend=os.getenv("TOKENGUARD_STORE_BACKEND", "memory"),
                redis_url=os.getenv("TOKENGUARD_REDIS_URL", "redis://localhost:6379/0"),
            ),
        )

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.access_secret:
            raise ValueError("access_secret is required")
        if not self.refresh_secret:
            raise ValueError("refresh_secret is required")
        if self.access_secret == self.refresh_secret:
            raise ValueError("access_secret and refresh_secret must differ")
        if self.access_expire_seconds <= 0:
            raise ValueError("access_expire_seconds must be positive")
        if self.refresh_expire_seconds <= 0:
            raise ValueError("refresh_expire_seconds must be positive")
        if not self.token_name:
            raise ValueError("token_name is required")
        if self.access_server_check and not self.access_server_tracking:
            raise ValueError("access_server_check requires access_server_tracking")
        if not self.algorithm.startswith("HS"):
            raise ValueError(f"Only HMAC algorithms are supported, got {self.algorithm}")
        return True
