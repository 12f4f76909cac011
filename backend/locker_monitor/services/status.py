"""
Door Status
===========

Answers the first question anyone asks the dashboard: is the door open?

We only look at the newest event (index 0 of the snapshot). If it's an open
event, the door is open. Otherwise it's closed.
"""

from datetime import datetime
from typing import Optional, Sequence

from locker_monitor.models import DoorEvent, DoorStatus


ABSOLUTE_FORMAT = "%Y-%m-%d %H:%M:%S"


def humanize_elapsed(event_time: datetime, now: Optional[datetime] = None) -> str:
    """
    How long ago something happened, in words.

    - Under a minute: "42 seconds ago"
    - Under an hour: "17 minutes ago"
    - Anything older: the local timestamp, e.g. "2024-01-01 22:00:00"

    Events stamped slightly in the future (clock skew) count as 0 seconds ago.
    """
    now = now or datetime.now()
    elapsed = max(0, int((now - event_time).total_seconds()))

    if elapsed < 60:
        return f"{elapsed} seconds ago"
    if elapsed < 3600:
        return f"{elapsed // 60} minutes ago"
    return event_time.strftime(ABSOLUTE_FORMAT)


def derive_status(events: Sequence[DoorEvent], now: Optional[datetime] = None) -> DoorStatus:
    """
    Work out the current door status from a newest-first event list.

    An empty list means we've never heard from the sensor: has_data is False
    and the door is reported closed.
    """
    if not events:
        return DoorStatus()

    latest = events[0]
    return DoorStatus(
        has_data=True,
        is_open=latest.is_open,
        last_change_time=latest.created_at,
        time=latest.created_at.strftime("%H:%M:%S"),
        human_relative_time=humanize_elapsed(latest.created_at, now),
    )
