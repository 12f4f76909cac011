"""
Dashboard API Router
====================

Everything the dashboard draws, computed from the in-memory event snapshot.

The snapshot is refreshed in the background every few seconds, so these
endpoints are cheap: no database call, just number crunching on the latest
copy. If the event store has been down, you get the last good data.

ALL ENDPOINTS:
-------------
GET /api/dashboard/status                        - Door open/closed + today's counters
GET /api/dashboard/histogram?granularity=60      - Opens per time of day (all time + today)
GET /api/dashboard/heatmap                       - Opens per weekday x hour
GET /api/dashboard/timeseries?interval=60&window=24&scroll=0
                                                 - Rolling timeseries ending now
GET /api/dashboard/after-hours?days=7            - After-hours report (hits the database)
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from locker_monitor.config import Config
from locker_monitor.models import (
    AfterHoursReport,
    BucketHistogram,
    DoorStatus,
    Heatmap,
    RollingSeries,
    TodaySummary,
)
from locker_monitor.routers.events import get_config, get_event_fetcher, get_event_store
from locker_monitor.services import aggregator
from locker_monitor.services.after_hours import build_after_hours_report
from locker_monitor.services.status import derive_status
from locker_monitor.utils.validation import (
    MAX_INTERVAL_MINUTES,
    MAX_WINDOW_SIZE,
    MIN_INTERVAL_MINUTES,
    MIN_WINDOW_SIZE,
    parse_int,
    snap_granularity,
    validate_days,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------


class DashboardStatusResponse(BaseModel):
    """Top of the status page."""
    status: DoorStatus
    summary: TodaySummary
    last_update: Optional[datetime] = Field(None, description="When the snapshot was fetched")
    loading: bool = Field(False, description="A refresh is in flight")
    last_error: Optional[str] = Field(None, description="Why the last refresh failed, if it did")


class HistogramResponse(BaseModel):
    """All-time and today histograms, sharing one y-axis maximum."""
    granularity_minutes: int
    all_time: BucketHistogram
    today: BucketHistogram
    shared_max: int


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.get("/status", response_model=DashboardStatusResponse)
async def get_status(
    fetcher = Depends(get_event_fetcher),
    config: Config = Depends(get_config),
):
    """
    Is the door open right now, and how busy has today been?

    The after-hours counter uses the status window (19:00-07:00 by default).
    """
    snapshot = fetcher.snapshot
    now = datetime.now()
    return DashboardStatusResponse(
        status=derive_status(snapshot.events, now),
        summary=aggregator.summarize_today(snapshot.events, config.status_window, now),
        last_update=snapshot.fetched_at,
        loading=fetcher.loading,
        last_error=fetcher.last_error,
    )


@router.get("/histogram", response_model=HistogramResponse)
async def get_histogram(
    granularity: Optional[str] = Query(None, description="Bucket width in minutes: 60, 30 or 15"),
    fetcher = Depends(get_event_fetcher),
    config: Config = Depends(get_config),
):
    """
    Door opens per time of day.

    Any granularity gets snapped to the nearest of 60 / 30 / 15 minutes.
    """
    minutes = snap_granularity(parse_int(granularity, 60, 1, 1440))
    events = fetcher.snapshot.events
    window = config.histogram_window

    all_time = aggregator.bucketize(events, minutes, after_hours=window)
    today = aggregator.bucketize(events, minutes, aggregator.today_filter(), after_hours=window)

    return HistogramResponse(
        granularity_minutes=minutes,
        all_time=all_time,
        today=today,
        shared_max=max(all_time.max_count, today.max_count),
    )


@router.get("/heatmap", response_model=Heatmap)
async def get_heatmap(fetcher = Depends(get_event_fetcher)):
    """Door opens per weekday (Sunday first) and hour, over everything we have."""
    return aggregator.heatmap(fetcher.snapshot.events)


@router.get("/timeseries", response_model=RollingSeries)
async def get_timeseries(
    interval: Optional[str] = Query(None, description="Bar width in minutes, 10-1440 (default 60)"),
    window: Optional[str] = Query(None, description="Visible bars, 5-100 (default 24)"),
    scroll: Optional[str] = Query(None, description="Bars scrolled back from now (default 0)"),
    fetcher = Depends(get_event_fetcher),
    config: Config = Depends(get_config),
):
    """
    Rolling timeseries of door opens, 200 bars ending right now.

    The "visible" part is what's on screen. Scroll past the end and you
    just land on the oldest possible window.
    """
    return aggregator.rolling_series(
        fetcher.snapshot.events,
        interval_minutes=parse_int(interval, aggregator.DEFAULT_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES, MAX_INTERVAL_MINUTES),
        total_bars=aggregator.DEFAULT_TOTAL_BARS,
        window_size=parse_int(window, aggregator.DEFAULT_WINDOW_SIZE, MIN_WINDOW_SIZE, MAX_WINDOW_SIZE),
        scroll_offset=parse_int(scroll, 0, 0, aggregator.DEFAULT_TOTAL_BARS),
        after_hours=config.timeseries_window,
    )


@router.get("/after-hours", response_model=AfterHoursReport)
async def get_after_hours_report(
    days: Optional[str] = Query(None, description="Lookback in days (default 7)"),
    store = Depends(get_event_store),
    config: Config = Depends(get_config),
):
    """
    The after-hours page in one call.

    Stats and sessions are fetched in parallel; if either fails the whole
    request fails with a 500.
    """
    lookback = validate_days(days, default=7)
    stats, sessions = await asyncio.gather(
        store.get_after_hours_stats(lookback),
        store.get_after_hours_events(lookback),
    )
    logger.debug(f"[REPORT] {len(sessions)} after-hours sessions in the last {lookback} days")
    return build_after_hours_report(lookback, stats, sessions, config.report_window)
