"""
Events API Router
=================

The endpoints the dashboard has always used. These go straight to the event
store every time (no snapshot involved), so they always show live data.

ALL ENDPOINTS:
-------------
GET /api/events?limit=N               - Raw door events, newest first (default 1000)
GET /api/after-hours-stats?days=N     - Merged after-hours stats (default 7 days)
GET /api/after-hours-events?days=N    - After-hours sessions (default 30 days)

If the event store is down, all of these answer 500 with {"error": "..."}.
Bad query parameters never fail: they get clamped or fall back to the default.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from locker_monitor.config import Config
from locker_monitor.models import AfterHoursStats
from locker_monitor.utils.validation import validate_days, validate_limit


router = APIRouter(prefix="/api", tags=["events"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================
# These get set once when the app starts (see main.py lifespan)

_event_store = None
_event_fetcher = None
_config: Optional[Config] = None


def set_services(store, fetcher, config: Config):
    """Called when the app starts to hand us the store, fetcher and settings."""
    global _event_store, _event_fetcher, _config
    _event_store = store
    _event_fetcher = fetcher
    _config = config


def clear_services():
    """Called on shutdown so nobody uses closed services."""
    global _event_store, _event_fetcher, _config
    _event_store = None
    _event_fetcher = None
    _config = None


def get_event_store():
    if _event_store is None:
        raise HTTPException(status_code=500, detail="Server not fully started yet")
    return _event_store


def get_event_fetcher():
    if _event_fetcher is None:
        raise HTTPException(status_code=500, detail="Server not fully started yet")
    return _event_fetcher


def get_config() -> Config:
    if _config is None:
        raise HTTPException(status_code=500, detail="Server not fully started yet")
    return _config


# =============================================================================
# EVENT STORE PASSTHROUGH
# =============================================================================

@router.get("/events")
async def get_events(
    limit: Optional[str] = Query(None, description="Max events to return (default 1000)"),
    store = Depends(get_event_store),
):
    """
    Get door events, newest first.

    This is a straight passthrough: you get the rows exactly as the
    database stores them.
    """
    return await store.fetch_event_rows(limit=validate_limit(limit))


@router.get("/after-hours-stats", response_model=AfterHoursStats)
async def get_after_hours_stats(
    days: Optional[str] = Query(None, description="Lookback in days (default 7)"),
    store = Depends(get_event_store),
):
    """
    After-hours statistics for the last N days.

    Two database queries run in parallel (after-hours stats and the
    business-hours average). If either fails, you get a 500.
    """
    return await store.get_after_hours_stats(validate_days(days, default=7))


@router.get("/after-hours-events")
async def get_after_hours_events(
    days: Optional[str] = Query(None, description="Lookback in days (default 30)"),
    store = Depends(get_event_store),
):
    """
    After-hours sessions for the last N days.

    Each row looks like:
        {"event_id": 812, "opened_at_sp": "2024-01-01T22:00:00", "duration_seconds": 41.2}
    """
    return await store.fetch_after_hours_rows(validate_days(days, default=30))
