"""
Services Package
================

These are the "workers" that do the actual work.

- EventStoreService: Talks to the hosted event database
- EventFetcher: Keeps the latest event snapshot in memory
- aggregator: Turns events into histograms, heatmaps and timeseries
- status: Is the door open right now?
- after_hours: Builds the after-hours report
"""

from .event_store_service import EventStoreService, EventStoreError
from .event_fetcher import EventFetcher

__all__ = [
    "EventStoreService",
    "EventStoreError",
    "EventFetcher",
]
