"""
Door Event Models
=================
Pydantic models for door events and every view we derive from them.

This module defines all data structures used throughout the application:
- Raw data: What the event store gives us (DoorEvent, AfterHoursSession)
- Snapshot: The latest full list of events held in memory
- Derived views: What the dashboard draws (histograms, heatmap, timeseries)

TIME HANDLING:
    Every timestamp is local wall-clock time of this process. The event
    store hands out UTC timestamps, so DoorEvent converts them to local time
    on the way in. No other timezone logic happens anywhere else.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware timestamp to naive local time; naive ones pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# =============================================================================
# AFTER-HOURS WINDOW
# =============================================================================

class AfterHoursWindow(BaseModel):
    """
    A half-open range of hours on a 24-hour clock that counts as "after hours".

    start_hour=20, end_hour=7 means 20:00 up to (not including) 07:00,
    wrapping over midnight. If start is before end the window does not wrap.
    Equal bounds mean nothing is after hours.
    """
    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(20, ge=0, le=23, description="First after-hours hour")
    end_hour: int = Field(7, ge=0, le=23, description="First business hour")

    def contains(self, hour: int) -> bool:
        if self.start_hour > self.end_hour:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour

    def label(self) -> str:
        return f"{self.start_hour:02d}:00-{self.end_hour:02d}:00"


# =============================================================================
# RAW DATA - What the event store sends us
# =============================================================================

class DoorEvent(BaseModel):
    """
    A single door event, exactly as stored by the sensor.

    Example from the event store:
        {
            "id": 4211,
            "event_type": "door_opened",
            "created_at": "2024-01-01T22:00:00+00:00"
        }

    The event_type is free text. We only look for the words "open" and
    "close" in it (see is_open).
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Union[int, str] = Field(..., description="Event identifier")
    event_type: str = Field(..., description="Free-text event type from the sensor")
    created_at: datetime = Field(..., description="When it happened (local time)")

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return to_local_naive(value)

    @property
    def is_open(self) -> bool:
        """True if this is an "open" event: mentions open, does not mention close."""
        kind = self.event_type.lower()
        return "open" in kind and "close" not in kind


class EventSnapshot(BaseModel):
    """
    The full event list from one successful fetch, newest first.

    Snapshots are never edited. A new fetch builds a new snapshot and the
    fetcher swaps it in with a single assignment.
    """
    model_config = ConfigDict(frozen=True)

    events: tuple[DoorEvent, ...] = Field(default=(), description="Newest first")
    fetched_at: Optional[datetime] = Field(None, description="When this snapshot was fetched")


class AfterHoursSession(BaseModel):
    """One after-hours open/close pair, computed by the database."""
    model_config = ConfigDict(extra="ignore")

    event_id: Union[int, str] = Field(..., description="Id of the opening event")
    opened_at_sp: datetime = Field(..., description="When the door was opened")
    duration_seconds: float = Field(0.0, description="How long it stayed open")

    @field_validator("opened_at_sp")
    @classmethod
    def _normalize_opened_at(cls, value: datetime) -> datetime:
        return to_local_naive(value)

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _default_duration(cls, value):
        return 0.0 if value is None else value


class AfterHoursStats(BaseModel):
    """
    Server-computed after-hours statistics merged with the business-hours average.

    Everything except business_hours_avg comes from one database query;
    business_hours_avg comes from a second one (or the configured fallback).
    """
    total_events: int = Field(0, description="After-hours open/close pairs")
    avg_duration_seconds: float = Field(0.0, description="Average after-hours duration")
    max_duration_seconds: float = Field(0.0, description="Longest after-hours duration")
    suspicious_count: int = Field(0, description="Sessions longer than the business-hours average")
    business_hours_avg: float = Field(..., description="Average business-hours duration")


# =============================================================================
# DERIVED VIEWS - What the dashboard draws
# =============================================================================

class DoorStatus(BaseModel):
    """Is the door open right now, and since when?"""
    has_data: bool = Field(False, description="False when there are no events at all")
    is_open: bool = Field(False, description="Latest event is an open event")
    last_change_time: Optional[datetime] = Field(None, description="Time of the latest event")
    time: str = Field("", description="Latest event time as HH:MM:SS")
    human_relative_time: str = Field("", description="e.g. '12 seconds ago'")


class TodaySummary(BaseModel):
    """The three counters at the top of the status page."""
    total_today: int = Field(0, description="Open events since local midnight")
    after_hours_today: int = Field(0, description="Of those, how many were after hours")
    total: int = Field(0, description="Every event in the snapshot, any type")
    after_hours_window: str = Field(..., description="Window used, e.g. 19:00-07:00")


class BucketHistogram(BaseModel):
    """
    Open events per time-of-day bucket. All days are folded into one day.

    labels[i], counts[i] and after_hours[i] describe bucket i.
    """
    granularity_minutes: int
    labels: list[str]
    counts: list[int]
    after_hours: list[bool]
    max_count: int = 0
    total: int = 0


class Heatmap(BaseModel):
    """Open events per day-of-week (Sunday=0) and hour-of-day."""
    days: list[str]
    counts: list[list[int]]
    max_count: int = 0

    def intensity(self, day: int, hour: int) -> float:
        """Cell count relative to the busiest cell, 0.0 when everything is empty."""
        if self.max_count == 0:
            return 0.0
        return self.counts[day][hour] / self.max_count


class RollingWindowState(BaseModel):
    """The clamped window/scroll settings a rolling series was built with."""
    total_bars: int
    interval_minutes: int
    window_size: int
    scroll_offset: int
    max_scroll: int


class VisibleSlice(BaseModel):
    """The part of a rolling series that is actually on screen."""
    start: int
    end: int
    labels: list[str]
    counts: list[int]
    bar_end_times: list[datetime]
    after_hours: list[bool]


class RollingSeries(BaseModel):
    """
    A fixed-length series of open-event counts ending at "now".

    labels/counts/bar_end_times always have total_bars entries, oldest first.
    """
    labels: list[str]
    counts: list[int]
    bar_end_times: list[datetime]
    visible: VisibleSlice
    state: RollingWindowState


class FlaggedSession(BaseModel):
    """An after-hours session marked against the business-hours average."""
    event_id: Union[int, str]
    opened_at_sp: datetime
    duration_seconds: float
    above_average: bool


class DailyCount(BaseModel):
    date: str
    count: int


class AfterHoursReport(BaseModel):
    """Everything the after-hours page shows, in one response."""
    days: int
    stats: AfterHoursStats
    timeline: list[FlaggedSession] = Field(..., description="Oldest first")
    daily_counts: list[DailyCount] = Field(..., description="Oldest day first")
    hourly_counts: list[int] = Field(..., description="24 slots, one per hour")
    hourly_after_hours: list[bool] = Field(..., description="24 slots, one per hour")
    recent: list[FlaggedSession] = Field(..., description="Newest first, at most 20")
