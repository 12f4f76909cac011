"""
After-Hours Report
==================

Builds the after-hours page from two things the database gives us:
- the merged stats record (see EventStoreService.get_after_hours_stats)
- the list of after-hours open/close sessions

Each session is compared with the business-hours average. Anything that
stayed open longer than a normal daytime visit is flagged "above average".
"""

from collections import Counter
from typing import Sequence

from locker_monitor.models import (
    AfterHoursReport,
    AfterHoursSession,
    AfterHoursStats,
    AfterHoursWindow,
    DailyCount,
    FlaggedSession,
)

RECENT_LIMIT = 20


def flag_session(session: AfterHoursSession, business_hours_avg: float) -> FlaggedSession:
    return FlaggedSession(
        event_id=session.event_id,
        opened_at_sp=session.opened_at_sp,
        duration_seconds=session.duration_seconds,
        above_average=session.duration_seconds > business_hours_avg,
    )


def build_after_hours_report(
    days: int,
    stats: AfterHoursStats,
    sessions: Sequence[AfterHoursSession],
    after_hours: AfterHoursWindow,
) -> AfterHoursReport:
    """
    Put together everything the after-hours page shows.

    Args:
        days: Lookback window the data was fetched for
        stats: Merged stats record
        sessions: After-hours sessions, newest first (as the database returns them)
        after_hours: Window used to shade the per-hour chart

    Returns:
        An AfterHoursReport; empty sessions give empty/zeroed lists
    """
    flagged = [flag_session(session, stats.business_hours_avg) for session in sessions]
    chronological = list(reversed(flagged))

    # Counter keeps first-seen order, so days come out oldest first
    per_day = Counter(session.opened_at_sp.date().isoformat() for session in chronological)
    per_hour = Counter(session.opened_at_sp.hour for session in sessions)

    return AfterHoursReport(
        days=days,
        stats=stats,
        timeline=chronological,
        daily_counts=[DailyCount(date=day, count=count) for day, count in per_day.items()],
        hourly_counts=[per_hour.get(hour, 0) for hour in range(24)],
        hourly_after_hours=[after_hours.contains(hour) for hour in range(24)],
        recent=flagged[:RECENT_LIMIT],
    )
