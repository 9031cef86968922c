"""
Common utilities and helper functions for tokenguard.
"""

import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def generate_id() -> str:
    """Generate a compact unique identifier (32 hex chars, no dashes)."""
    return uuid.uuid4().hex


def generate_request_id() -> str:
    """Generate a request ID for tracing."""
    return f"req_{int(time.time())}_{secrets.token_hex(8)}"


def get_current_time() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def to_timestamp(value: Optional[datetime]) -> Optional[int]:
    """Convert a datetime to integer epoch seconds."""
    if value is None:
        return None
    return int(value.timestamp())


def from_timestamp(value: Optional[Any]) -> Optional[datetime]:
    """Convert epoch seconds (int, float or numeric string) to an aware UTC datetime."""
    if value is None or value == "":
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty or whitespace-only strings."""
    return value is None or not str(value).strip()


def drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` without ``None`` values."""
    return {key: value for key, value in data.items() if value is not None}
