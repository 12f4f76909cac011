"""
Event Store Service
===================

This talks to the hosted database where the door sensor writes its events.

WHAT THIS DOES:
--------------
1. Reads the raw door events (newest first)
2. Asks the database for after-hours statistics
3. Asks the database for the business-hours average open duration
4. Reads the list of after-hours open/close sessions

HOW THE EVENT STORE WORKS:
-------------------------
The store is a Supabase project, which means a PostgREST API:
- Tables are read with GET /rest/v1/<table>?select=*&order=...&limit=...
- SQL functions are called with POST /rest/v1/rpc/<function> and a JSON body

Every request carries the service key twice: as "apikey" and as a
Bearer token.

THE DATA FLOW:
-------------
    [Door Sensor] --insert--> [Supabase: door_events]
                                       |
                                       | GET /rest/v1/door_events
                                       | POST /rest/v1/rpc/...
                                       v
                             [This Service] ---> EventFetcher / API routes

WHEN THINGS BREAK:
-----------------
Any network problem, HTTP error or garbage JSON becomes an EventStoreError.
The API turns that into a 500 with {"error": "..."}; the fetcher logs it
and keeps the previous snapshot.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from locker_monitor.models import AfterHoursSession, AfterHoursStats, DoorEvent

logger = logging.getLogger(__name__)


class EventStoreError(Exception):
    """Something went wrong talking to the event store."""


# =============================================================================
# THE MAIN SERVICE CLASS
# =============================================================================

class EventStoreService:
    """
    This class handles every call to the event store.

    HOW TO USE:
    ----------
    # Create the service (done automatically at startup)
    store = EventStoreService(
        base_url="https://xyz.supabase.co",
        service_key="your-service-key"
    )

    # Get the latest events
    events = await store.fetch_events(limit=1000)

    # Get after-hours stats for the last week
    stats = await store.get_after_hours_stats(days=7)
    print(stats.business_hours_avg)
    """

    EVENTS_TABLE = "door_events"
    STATS_FUNCTION = "get_after_hours_stats"
    BUSINESS_AVG_FUNCTION = "get_business_hours_avg"
    SESSIONS_FUNCTION = "get_after_hours_events"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        request_timeout: float = 10.0,
        business_hours_avg_fallback: float = 13.7,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Set up the service.

        Args:
            base_url: Supabase project URL (like "https://xyz.supabase.co")
            service_key: Supabase service key
            request_timeout: How long to wait for any single call (seconds)
            business_hours_avg_fallback: Used when the database has no
                business-hours average yet
            http_client: Bring your own client (handy for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.business_hours_avg_fallback = business_hours_avg_fallback
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
        }
        # One client for everything so connections get reused
        self.http_client = http_client or httpx.AsyncClient(timeout=request_timeout)

    # =========================================================================
    # LOW-LEVEL REQUESTS
    # =========================================================================

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Make one request and return the parsed JSON, or raise EventStoreError."""
        url = f"{self.base_url}/rest/v1/{path}"
        try:
            response = await self.http_client.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error(f"[STORE] {method} {path} timed out: {e}")
            raise EventStoreError(f"Event store timed out ({path})") from e
        except httpx.HTTPStatusError as e:
            error_body = e.response.text[:500]
            logger.error(f"[STORE] {method} {path} failed - HTTP {e.response.status_code}\nResponse: {error_body}")
            raise EventStoreError(f"Event store returned HTTP {e.response.status_code} ({path})") from e
        except httpx.HTTPError as e:
            logger.error(f"[STORE] {method} {path} failed: {e}")
            raise EventStoreError(f"Cannot reach event store ({path}): {e}") from e
        except ValueError as e:
            logger.error(f"[STORE] {method} {path} returned invalid JSON: {e}")
            raise EventStoreError(f"Event store returned invalid JSON ({path})") from e

    async def _rpc(self, function: str, days: int) -> Any:
        return await self._request("POST", f"rpc/{function}", json={"days_back": days})

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def fetch_event_rows(self, limit: int = 1000) -> list[dict]:
        """
        Door events exactly as the store returns them, newest first.

        This is what GET /api/events passes through untouched.
        """
        data = await self._request(
            "GET",
            self.EVENTS_TABLE,
            params={"select": "*", "order": "created_at.desc", "limit": str(limit)},
        )
        if not isinstance(data, list):
            raise EventStoreError("Event store returned something that isn't a list of events")
        return data

    async def fetch_events(self, limit: int = 1000) -> list[DoorEvent]:
        """
        Get door events, newest first.

        Args:
            limit: Maximum number of events to return

        Returns:
            A list of DoorEvent, index 0 is the most recent. Rows that don't
            parse are logged and left out; the rest are still returned.
        """
        data = await self.fetch_event_rows(limit)
        events = []
        for row in data:
            try:
                events.append(DoorEvent.model_validate(row))
            except ValidationError as e:
                row_id = row.get("id") if isinstance(row, dict) else None
                logger.warning(f"[STORE] Skipping malformed door event {row_id!r}: {e}")
        return events

    # =========================================================================
    # AFTER-HOURS AGGREGATES
    # =========================================================================

    async def fetch_after_hours_stats(self, days: int) -> dict:
        """
        Raw after-hours stats from the database.

        PostgREST returns set-returning functions as a list, so a one-row
        result may come back as [{...}]. We unwrap that here.
        """
        data = await self._rpc(self.STATS_FUNCTION, days)
        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            raise EventStoreError("Event store returned malformed after-hours stats")
        return data

    async def fetch_business_hours_avg(self, days: int) -> Optional[float]:
        """
        Average business-hours open duration, or None if the database has none.

        Accepts a bare number, {"business_hours_avg": x},
        {"avg_duration_seconds": x}, or a one-row list of either.
        """
        data = await self._rpc(self.BUSINESS_AVG_FUNCTION, days)
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = data.get("business_hours_avg", data.get("avg_duration_seconds"))
        if data is None:
            return None
        try:
            return float(data)
        except (TypeError, ValueError) as e:
            raise EventStoreError("Event store returned a malformed business-hours average") from e

    async def get_after_hours_stats(self, days: int) -> AfterHoursStats:
        """
        THE MAIN STATS FUNCTION - both queries at once, merged into one record.

        Both requests run in parallel. If either one fails the whole thing
        fails; we never hand out half a record.

        Args:
            days: Lookback window in whole days

        Returns:
            AfterHoursStats with business_hours_avg filled in (or the fallback)
        """
        stats, business_avg = await asyncio.gather(
            self.fetch_after_hours_stats(days),
            self.fetch_business_hours_avg(days),
        )

        if business_avg is None:
            logger.debug(f"[STORE] No business-hours average, using fallback {self.business_hours_avg_fallback}s")
            business_avg = self.business_hours_avg_fallback

        try:
            return AfterHoursStats(
                total_events=stats.get("total_events") or 0,
                avg_duration_seconds=stats.get("avg_duration_seconds") or 0.0,
                max_duration_seconds=stats.get("max_duration_seconds") or 0.0,
                suspicious_count=stats.get("suspicious_count") or 0,
                business_hours_avg=business_avg,
            )
        except ValidationError as e:
            raise EventStoreError("Event store returned malformed after-hours stats") from e

    async def fetch_after_hours_rows(self, days: int) -> list[dict]:
        """After-hours sessions exactly as the store returns them, newest first."""
        data = await self._rpc(self.SESSIONS_FUNCTION, days)
        if not isinstance(data, list):
            raise EventStoreError("Event store returned something that isn't a list of sessions")
        return data

    async def get_after_hours_events(self, days: int) -> list[AfterHoursSession]:
        """
        After-hours open/close sessions, newest first.

        Args:
            days: Lookback window in whole days
        """
        data = await self.fetch_after_hours_rows(days)
        try:
            return [AfterHoursSession.model_validate(row) for row in data]
        except ValidationError as e:
            logger.error(f"[STORE] Malformed after-hours session: {e}")
            raise EventStoreError("Event store returned a malformed after-hours session") from e

    async def close(self):
        """
        Clean up when we're done.

        Called when the server shuts down.
        """
        await self.http_client.aclose()
