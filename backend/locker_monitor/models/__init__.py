"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from locker_monitor.models import DoorEvent, AfterHoursWindow
"""

from .event import (
    # Raw data from the event store
    DoorEvent,
    EventSnapshot,
    AfterHoursSession,
    AfterHoursStats,

    # Business rules
    AfterHoursWindow,

    # What we send back to the dashboard
    DoorStatus,
    TodaySummary,
    BucketHistogram,
    Heatmap,
    RollingWindowState,
    VisibleSlice,
    RollingSeries,
    FlaggedSession,
    DailyCount,
    AfterHoursReport,
)

__all__ = [
    "DoorEvent",
    "EventSnapshot",
    "AfterHoursSession",
    "AfterHoursStats",
    "AfterHoursWindow",
    "DoorStatus",
    "TodaySummary",
    "BucketHistogram",
    "Heatmap",
    "RollingWindowState",
    "VisibleSlice",
    "RollingSeries",
    "FlaggedSession",
    "DailyCount",
    "AfterHoursReport",
]
