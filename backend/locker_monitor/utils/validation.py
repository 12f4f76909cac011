"""
Input Validation Utilities
===========================

Helpers for cleaning up query parameters from the dashboard.

Bad input is never an error here: anything out of range gets clamped,
anything unparseable falls back to the default.
"""

from typing import Optional, Sequence


# Supported histogram bucket widths (minutes). Each one divides a day evenly.
GRANULARITIES = (60, 30, 15)

# Rolling timeseries limits
MIN_WINDOW_SIZE = 5
MAX_WINDOW_SIZE = 100
MIN_INTERVAL_MINUTES = 10
MAX_INTERVAL_MINUTES = 1440

# Lookback limits for the after-hours queries
MIN_DAYS = 1
MAX_DAYS = 365

# Limits for GET /api/events
MIN_LIMIT = 1
MAX_LIMIT = 10000


def clamp(value: int, minimum: int, maximum: int) -> int:
    """Force value into [minimum, maximum]."""
    return max(minimum, min(maximum, value))


def parse_int(
    value: Optional[str],
    default: int,
    minimum: int = 0,
    maximum: int = 10000
) -> int:
    """
    Parse a query parameter into a clamped integer.

    Args:
        value: Raw query string value (may be None or junk)
        default: What to use when value is missing or not a number
        minimum: Lowest allowed value
        maximum: Highest allowed value

    Returns:
        An int in [minimum, maximum]

    Example:
        parse_int("500", 24, 5, 100)   -> 100
        parse_int("abc", 24, 5, 100)   -> 24
        parse_int("7.9", 7, 1, 365)    -> 7
    """
    if value is None or str(value).strip() == "":
        return clamp(default, minimum, maximum)
    try:
        parsed = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return clamp(default, minimum, maximum)
    return clamp(parsed, minimum, maximum)


def snap_granularity(value: int, choices: Sequence[int] = GRANULARITIES) -> int:
    """
    Pick the supported granularity closest to value.

    Ties go to the coarser bucket, e.g. 45 -> 60.
    """
    return min(choices, key=lambda choice: (abs(choice - value), -choice))


def validate_days(value: Optional[str], default: int) -> int:
    """Lookback in whole days, clamped to [1, 365]."""
    return parse_int(value, default, MIN_DAYS, MAX_DAYS)


def validate_limit(value: Optional[str], default: int = 1000) -> int:
    """Maximum number of events to return, clamped to [1, 10000]."""
    return parse_int(value, default, MIN_LIMIT, MAX_LIMIT)
