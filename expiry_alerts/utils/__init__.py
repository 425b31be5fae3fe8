"""Utility functions for time handling."""

from .timestamps import (
    ensure_utc,
    format_timestamp_for_log,
    from_storage,
    to_storage,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "to_storage",
    "from_storage",
    "format_timestamp_for_log",
]
