"""
Temporal Aggregator
===================

This is where raw door events turn into the charts on the dashboard.

WHAT THIS DOES:
--------------
1. Histogram: open events per time-of-day bucket (1h / 30min / 15min)
2. Heatmap: open events per day-of-week x hour-of-day
3. Rolling timeseries: open events per fixed interval, ending right now,
   with a scrollable visible window
4. Today's counters for the status page

RULES OF THE ROAD:
-----------------
- Everything here is a plain function. Same input, same output. No I/O.
- Only "open" events are counted (see DoorEvent.is_open), except the
  "total" counter which counts everything.
- Empty input is fine. You get zero-filled results, never an exception.
- Timestamps are local wall-clock time. No timezone conversion happens here.
"""

from bisect import bisect_left
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Sequence

from locker_monitor.models import (
    AfterHoursWindow,
    BucketHistogram,
    DoorEvent,
    Heatmap,
    RollingSeries,
    RollingWindowState,
    TodaySummary,
    VisibleSlice,
)
from locker_monitor.utils.validation import (
    MAX_INTERVAL_MINUTES,
    MAX_WINDOW_SIZE,
    MIN_INTERVAL_MINUTES,
    MIN_WINDOW_SIZE,
    clamp,
)

EventFilter = Callable[[DoorEvent], bool]

MINUTES_PER_DAY = 24 * 60

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Rolling timeseries defaults
DEFAULT_TOTAL_BARS = 200
DEFAULT_WINDOW_SIZE = 24
DEFAULT_INTERVAL_MINUTES = 60

DEFAULT_AFTER_HOURS = AfterHoursWindow(start_hour=20, end_hour=7)


def open_events(events: Iterable[DoorEvent]) -> list[DoorEvent]:
    """Keep only the open events."""
    return [event for event in events if event.is_open]


def day_of_week(moment: datetime) -> int:
    """Sunday=0 ... Saturday=6 (Python's weekday() starts at Monday=0)."""
    return (moment.weekday() + 1) % 7


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def today_filter(now: Optional[datetime] = None) -> EventFilter:
    """
    Build a filter that only lets through events from today (local midnight on).

    Args:
        now: "Current" time. Default: datetime.now()
    """
    midnight = start_of_day(now or datetime.now())
    return lambda event: event.created_at >= midnight


# =============================================================================
# HISTOGRAM
# =============================================================================

def bucket_label(index: int, granularity_minutes: int) -> str:
    """Start time of a bucket as HH:MM, e.g. bucket 3 at 30 minutes -> "01:30"."""
    hours, minutes = divmod(index * granularity_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def bucketize(
    events: Iterable[DoorEvent],
    granularity_minutes: int,
    event_filter: Optional[EventFilter] = None,
    after_hours: AfterHoursWindow = DEFAULT_AFTER_HOURS,
) -> BucketHistogram:
    """
    Count open events per time-of-day bucket.

    Every day is folded onto the same 24 hours: an event at 22:10 on Monday
    and one at 22:40 on Friday land in the same 60-minute bucket.

    Args:
        events: Door events (any order)
        granularity_minutes: Bucket width. Must divide 1440 evenly (60, 30, 15...)
        event_filter: Optional extra predicate, e.g. today_filter()
        after_hours: Window used to flag buckets by their start hour

    Returns:
        A BucketHistogram with 1440 / granularity_minutes buckets

    Raises:
        ValueError: If granularity_minutes does not divide a day evenly
    """
    if granularity_minutes <= 0 or MINUTES_PER_DAY % granularity_minutes != 0:
        raise ValueError(f"granularity_minutes must divide {MINUTES_PER_DAY}, got {granularity_minutes}")

    bucket_count = MINUTES_PER_DAY // granularity_minutes
    counts = [0] * bucket_count

    for event in events:
        if not event.is_open:
            continue
        if event_filter is not None and not event_filter(event):
            continue
        minute_of_day = event.created_at.hour * 60 + event.created_at.minute
        counts[minute_of_day // granularity_minutes] += 1

    labels = [bucket_label(i, granularity_minutes) for i in range(bucket_count)]
    flags = [after_hours.contains(i * granularity_minutes // 60) for i in range(bucket_count)]

    return BucketHistogram(
        granularity_minutes=granularity_minutes,
        labels=labels,
        counts=counts,
        after_hours=flags,
        max_count=max(counts),
        total=sum(counts),
    )


# =============================================================================
# HEATMAP
# =============================================================================

def heatmap(events: Iterable[DoorEvent]) -> Heatmap:
    """
    Count open events per day-of-week (rows, Sunday first) and hour (columns).

    max_count is the busiest cell, or 0 when there's nothing to count.
    """
    grid = [[0] * 24 for _ in range(7)]

    for event in events:
        if event.is_open:
            grid[day_of_week(event.created_at)][event.created_at.hour] += 1

    return Heatmap(
        days=list(DAY_NAMES),
        counts=grid,
        max_count=max(max(row) for row in grid),
    )


# =============================================================================
# ROLLING TIMESERIES
# =============================================================================

def clamp_window_size(window_size: Optional[int], total_bars: int = DEFAULT_TOTAL_BARS) -> int:
    """Visible bars, between 5 and 100 (and never more than we have)."""
    size = clamp(window_size or DEFAULT_WINDOW_SIZE, MIN_WINDOW_SIZE, MAX_WINDOW_SIZE)
    return min(size, total_bars)


def clamp_interval(interval_minutes: Optional[int]) -> int:
    """Bar width in minutes, between 10 and 1440."""
    return clamp(interval_minutes or DEFAULT_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES, MAX_INTERVAL_MINUTES)


def clamp_scroll(scroll_offset: Optional[int], total_bars: int, window_size: int) -> int:
    """Bars scrolled back from "now", between 0 and total_bars - window_size."""
    max_scroll = max(0, total_bars - window_size)
    return clamp(scroll_offset or 0, 0, max_scroll)


def scroll_offset_for_drag(
    start_offset: int,
    delta_px: float,
    track_width_px: float,
    total_bars: int = DEFAULT_TOTAL_BARS,
    window_size: Optional[int] = DEFAULT_WINDOW_SIZE,
) -> int:
    """
    Turn a horizontal drag on the scroll track into a new scroll offset.

    Nothing in the API calls this; it is the drag math for the frontend's
    scroll track, kept next to clamp_scroll so both agree on the bounds.

    The track spans all total_bars, so dragging the full track width moves
    total_bars bars. Dragging left (negative delta_px) scrolls back in time.

    Args:
        start_offset: Scroll offset when the drag started
        delta_px: Pointer movement in pixels (current x - start x)
        track_width_px: Width of the scroll track in pixels
        total_bars: Bars the track represents
        window_size: Visible bars (clamped like rolling_series does)

    Returns:
        An offset in [0, total_bars - window_size]
    """
    max_scroll = max(0, total_bars - clamp_window_size(window_size, total_bars))
    if track_width_px <= 0:
        return clamp(start_offset, 0, max_scroll)
    bar_delta = (-delta_px / track_width_px) * total_bars
    return clamp(round(start_offset + bar_delta), 0, max_scroll)


def _bar_label(end_time: datetime, interval_minutes: int) -> str:
    if interval_minutes >= MINUTES_PER_DAY:
        return end_time.strftime("%Y-%m-%d")
    return end_time.strftime("%H:%M")


def rolling_series(
    events: Sequence[DoorEvent],
    interval_minutes: Optional[int] = DEFAULT_INTERVAL_MINUTES,
    total_bars: int = DEFAULT_TOTAL_BARS,
    window_size: Optional[int] = DEFAULT_WINDOW_SIZE,
    scroll_offset: Optional[int] = 0,
    now: Optional[datetime] = None,
    after_hours: AfterHoursWindow = DEFAULT_AFTER_HOURS,
) -> RollingSeries:
    """
    Build a fixed-length series of open-event counts ending at "now".

    Bar b (0 = oldest) covers [now - (i+1)*interval, now - i*interval) with
    i = total_bars - 1 - b. The series always has total_bars bars, even
    with no events at all.

    The visible slice is window_size bars long and sits scroll_offset bars
    back from the newest bar. Each visible bar is flagged after-hours by the
    hour its interval ends.

    Args:
        events: Door events (any order)
        interval_minutes: Bar width, clamped to [10, 1440]
        total_bars: Bars in the full series
        window_size: Visible bars, clamped to [5, 100]
        scroll_offset: Bars scrolled back, clamped to [0, total_bars - window_size]
        now: Anchor time. Default: datetime.now()
        after_hours: Window used to flag visible bars
    """
    now = now or datetime.now()
    interval_minutes = clamp_interval(interval_minutes)
    window_size = clamp_window_size(window_size, total_bars)
    scroll_offset = clamp_scroll(scroll_offset, total_bars, window_size)
    interval = timedelta(minutes=interval_minutes)

    # Sorted open timestamps let each bar be counted with two bisects
    timestamps = sorted(event.created_at for event in open_events(events))

    counts = [0] * total_bars
    end_times: list[datetime] = []
    for bar in range(total_bars):
        i = total_bars - 1 - bar
        end_time = now - i * interval
        start_time = end_time - interval
        counts[bar] = bisect_left(timestamps, end_time) - bisect_left(timestamps, start_time)
        end_times.append(end_time)

    labels = [_bar_label(end_time, interval_minutes) for end_time in end_times]

    start = max(0, total_bars - window_size - scroll_offset)
    end = total_bars - scroll_offset
    visible_times = end_times[start:end]

    return RollingSeries(
        labels=labels,
        counts=counts,
        bar_end_times=end_times,
        visible=VisibleSlice(
            start=start,
            end=end,
            labels=labels[start:end],
            counts=counts[start:end],
            bar_end_times=visible_times,
            after_hours=[after_hours.contains(moment.hour) for moment in visible_times],
        ),
        state=RollingWindowState(
            total_bars=total_bars,
            interval_minutes=interval_minutes,
            window_size=window_size,
            scroll_offset=scroll_offset,
            max_scroll=max(0, total_bars - window_size),
        ),
    )


# =============================================================================
# TODAY'S COUNTERS
# =============================================================================

def summarize_today(
    events: Sequence[DoorEvent],
    after_hours: AfterHoursWindow,
    now: Optional[datetime] = None,
) -> TodaySummary:
    """
    The status page counters.

    - total_today: open events since local midnight
    - after_hours_today: how many of those fall in the after-hours window
    - total: every event in the snapshot, open or not
    """
    is_today = today_filter(now)
    todays_opens = [event for event in events if event.is_open and is_today(event)]
    return TodaySummary(
        total_today=len(todays_opens),
        after_hours_today=sum(1 for event in todays_opens if after_hours.contains(event.created_at.hour)),
        total=len(events),
        after_hours_window=after_hours.label(),
    )
