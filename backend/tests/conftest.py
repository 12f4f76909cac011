"""Test fixtures.

FakeSupabase stands in for the hosted event store at the HTTP level (via
httpx.MockTransport), so the real EventStoreService code runs in every test.
"""

import json
from datetime import datetime

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from locker_monitor.config import Config
from locker_monitor.main import create_app
from locker_monitor.models import DoorEvent
from locker_monitor.routers import clear_services, set_services
from locker_monitor.services import EventFetcher, EventStoreService


STORE_URL = "http://store.test"
STORE_KEY = "test-service-key"


def make_event(event_id, event_type, created_at) -> DoorEvent:
    """Build a DoorEvent from a naive local datetime or ISO string."""
    return DoorEvent(id=event_id, event_type=event_type, created_at=created_at)


class FakeSupabase:
    """Answers PostgREST-style requests from in-memory data."""

    def __init__(self):
        self.events: list[dict] = []
        self.stats = {
            "total_events": 4,
            "avg_duration_seconds": 22.5,
            "max_duration_seconds": 61.0,
            "suspicious_count": 2,
        }
        self.business_avg = 15.0
        self.sessions: list[dict] = []
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name = request.url.path.rsplit("/", 1)[-1]

        if name in self.failing:
            return httpx.Response(503, text="upstream unavailable")

        if name == "door_events":
            limit = int(request.url.params.get("limit", "1000"))
            return httpx.Response(200, json=self.events[:limit])
        if name == "get_after_hours_stats":
            return httpx.Response(200, json=[self.stats])
        if name == "get_business_hours_avg":
            # json=None would send an empty body, not null
            return httpx.Response(
                200,
                content=json.dumps(self.business_avg),
                headers={"Content-Type": "application/json"},
            )
        if name == "get_after_hours_events":
            return httpx.Response(200, json=self.sessions)
        return httpx.Response(404, json={"message": "not found"})

    def add_event(self, event_id, event_type, created_at: datetime):
        """Add a row and keep the newest-first order the real store uses."""
        self.events.append({
            "id": event_id,
            "event_type": event_type,
            "created_at": created_at.isoformat(),
        })
        self.events.sort(key=lambda row: row["created_at"], reverse=True)


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def config():
    return Config(supabase_url=STORE_URL, supabase_key=STORE_KEY)


@pytest_asyncio.fixture
async def store(supabase, config):
    service = EventStoreService(
        base_url=config.supabase_url,
        service_key=config.supabase_key,
        business_hours_avg_fallback=config.business_hours_avg_fallback,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(supabase)),
    )
    yield service
    await service.close()


@pytest.fixture
def fetcher(store):
    return EventFetcher(store=store, polling_interval=5, limit=1000)


@pytest_asyncio.fixture
async def client(config, store, fetcher):
    """API client with services injected (no lifespan, no background polling)."""
    app = create_app(config)
    set_services(store, fetcher, config)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    clear_services()
