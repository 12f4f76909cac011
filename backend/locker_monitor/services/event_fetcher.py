"""
Event Fetcher
=============

This keeps the latest copy of the door event log in memory.

WHAT IT DOES:
------------
1. Fetches the full event list once at startup
2. Schedules a refresh every few seconds (5 by default)
3. Swaps in the new list in one go when a fetch works
4. Keeps the old list when a fetch fails (stale beats empty)

THE SNAPSHOT:
------------
The events live in an EventSnapshot, which is frozen. A refresh builds a
brand new snapshot and replaces the old one with a single assignment, so
anyone reading `fetcher.snapshot` always gets a complete, consistent list.

NO RETRIES:
----------
If a fetch fails we log it and wait for the next tick. The schedule itself
is the retry.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from locker_monitor.models import EventSnapshot
from locker_monitor.services.event_store_service import EventStoreError, EventStoreService

logger = logging.getLogger(__name__)


class EventFetcher:
    """
    Owns the in-memory event snapshot and the job that refreshes it.
    """

    JOB_ID = "refresh_events"

    def __init__(
        self,
        store: EventStoreService,
        polling_interval: int = 5,
        limit: int = 1000,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        """
        Set up the fetcher.

        Args:
            store: Where the events come from
            polling_interval: Seconds between refreshes. Default is 5.
            limit: How many events to keep per snapshot
            scheduler: Bring your own scheduler (it must not be started yet)
        """
        self.store = store
        self.polling_interval = polling_interval
        self.limit = limit
        self.scheduler = scheduler or AsyncIOScheduler()

        self._snapshot = EventSnapshot()
        self.loading = False
        self.last_error: Optional[str] = None
        self.last_attempt: Optional[datetime] = None

    @property
    def snapshot(self) -> EventSnapshot:
        """The latest complete snapshot (empty until the first fetch works)."""
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    # =========================================================================
    # REFRESHING
    # =========================================================================

    async def refresh(self) -> bool:
        """
        Fetch the full event list and swap it in.

        Returns:
            True if the snapshot was replaced, False if the fetch failed
            (the previous snapshot stays in place)
        """
        self.loading = True
        self.last_attempt = datetime.now()
        try:
            events = await self.store.fetch_events(limit=self.limit)
        except EventStoreError as e:
            self.last_error = str(e)
            logger.error(f"[FETCH] Refresh failed, keeping {len(self._snapshot.events)} cached events: {e}")
            return False
        finally:
            self.loading = False

        self._snapshot = EventSnapshot(events=tuple(events), fetched_at=datetime.now())
        self.last_error = None
        logger.debug(f"[FETCH] Snapshot replaced: {len(events)} events")
        return True

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    async def start(self):
        """
        Fetch once right away, then keep refreshing on a timer.

        Must be called from inside the running event loop (the app lifespan).
        """
        await self.refresh()

        self.scheduler.add_job(
            self.refresh,
            trigger=IntervalTrigger(seconds=self.polling_interval),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()

        logger.info(f"[FETCH] Polling event store every {self.polling_interval}s (limit {self.limit})")

    async def stop(self):
        """
        Stop the refresh job. The last snapshot stays readable.

        AsyncIOScheduler.shutdown() may only queue the real shutdown on the
        event loop, so we yield once to let it run before returning.
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            await asyncio.sleep(0)
            logger.info("[FETCH] Polling stopped")
