"""
Common utilities for tokenguard.
"""

from .utils import (
    generate_id,
    generate_request_id,
    get_current_time,
    to_timestamp,
    from_timestamp,
    is_blank,
    drop_none,
)

__all__ = [
    "generate_id",
    "generate_request_id",
    "get_current_time",
    "to_timestamp",
    "from_timestamp",
    "is_blank",
    "drop_none",
]
