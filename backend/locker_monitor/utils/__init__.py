"""
Utility modules for the locker monitor backend.
"""

from locker_monitor.utils.validation import (
    clamp,
    parse_int,
    snap_granularity,
    validate_days,
    validate_limit,
)

__all__ = [
    "clamp",
    "parse_int",
    "snap_granularity",
    "validate_days",
    "validate_limit",
]
