"""API tests: every endpoint through FastAPI, with the event store mocked over HTTP."""

import json
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

import locker_monitor.config as config_module
import locker_monitor.main as main_module
from locker_monitor.config import Config, ConfigError
from locker_monitor.main import build_lifespan, create_app


def last_body(supabase) -> dict:
    return json.loads(supabase.requests[-1].content)


@pytest.mark.asyncio
class TestBasics:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_root_lists_endpoints(self, client):
        data = (await client.get("/")).json()

        assert data["name"] == "Snack Locker Monitor API"
        assert "events" in data["endpoints"]
        assert "timeseries" in data["endpoints"]["dashboard"]

    async def test_unknown_route_uses_error_envelope(self, client):
        response = await client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    async def test_services_not_started(self, config):
        app = create_app(config)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/api/events")

        assert response.status_code == 500
        assert response.json() == {"error": "Server not fully started yet"}

    async def test_explicit_config_never_reads_dotenv(self, config, monkeypatch):
        def refuse():
            raise AssertionError(".env must not be loaded")

        monkeypatch.setattr(config_module, "load_dotenv", refuse)

        app = create_app(config)

        assert app.title == "Snack Locker Monitor API"
        assert not hasattr(main_module, "app")

    async def test_default_config_comes_from_environment(self, monkeypatch):
        loaded = []
        monkeypatch.setattr(config_module, "load_dotenv", lambda: loaded.append(True))
        monkeypatch.setenv("API_URL", "https://locker.example.com/api")

        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            data = (await ac.get("/")).json()

        assert loaded == [True]
        assert data["api_url"] == "https://locker.example.com/api"

    async def test_startup_requires_event_store_settings(self):
        app = create_app(Config())

        with pytest.raises(ConfigError):
            async with build_lifespan(Config())(app):
                pass


@pytest.mark.asyncio
class TestEventsEndpoints:

    async def test_events_passthrough(self, client, supabase):
        supabase.events = [
            {"id": 2, "event_type": "close", "created_at": "2024-01-01T22:05:00+00:00"},
            {"id": 1, "event_type": "open", "created_at": "2024-01-01T22:00:00+00:00"},
        ]

        response = await client.get("/api/events")

        assert response.status_code == 200
        assert response.json() == supabase.events
        assert supabase.requests[-1].url.params["limit"] == "1000"

    @pytest.mark.parametrize("raw,sent", [("5", "5"), ("abc", "1000"), ("0", "1"), ("999999", "10000")])
    async def test_events_limit_is_clamped(self, client, supabase, raw, sent):
        await client.get("/api/events", params={"limit": raw})

        assert supabase.requests[-1].url.params["limit"] == sent

    async def test_events_upstream_failure(self, client, supabase):
        supabase.failing.add("door_events")

        response = await client.get("/api/events")

        assert response.status_code == 500
        assert "error" in response.json()
        assert "503" in response.json()["error"]

    async def test_after_hours_stats(self, client, supabase):
        response = await client.get("/api/after-hours-stats")

        assert response.status_code == 200
        assert response.json() == {
            "total_events": 4,
            "avg_duration_seconds": 22.5,
            "max_duration_seconds": 61.0,
            "suspicious_count": 2,
            "business_hours_avg": 15.0,
        }
        assert last_body(supabase) == {"days_back": 7}

    @pytest.mark.parametrize("raw,days", [("14", 14), ("abc", 7), ("-2", 1), ("9999", 365)])
    async def test_after_hours_stats_days(self, client, supabase, raw, days):
        await client.get("/api/after-hours-stats", params={"days": raw})

        assert last_body(supabase) == {"days_back": days}

    async def test_after_hours_stats_fallback(self, client, supabase):
        supabase.business_avg = None

        response = await client.get("/api/after-hours-stats")

        assert response.json()["business_hours_avg"] == 13.7

    async def test_after_hours_stats_partial_failure(self, client, supabase):
        supabase.failing.add("get_business_hours_avg")

        response = await client.get("/api/after-hours-stats")

        assert response.status_code == 500
        assert set(response.json()) == {"error"}

    async def test_after_hours_events(self, client, supabase):
        supabase.sessions = [{"event_id": 3, "opened_at_sp": "2024-01-02T23:00:00", "duration_seconds": 12.0}]

        response = await client.get("/api/after-hours-events")

        assert response.status_code == 200
        assert response.json() == supabase.sessions
        assert last_body(supabase) == {"days_back": 30}


@pytest.mark.asyncio
class TestDashboardEndpoints:

    async def test_status_without_data(self, client):
        data = (await client.get("/api/dashboard/status")).json()

        assert data["status"]["has_data"] is False
        assert data["summary"]["total"] == 0
        assert data["summary"]["after_hours_window"] == "19:00-07:00"
        assert data["last_update"] is None

    async def test_status_with_data(self, client, supabase, fetcher):
        now = datetime.now()
        supabase.add_event(2, "door_opened", now - timedelta(seconds=1))
        supabase.add_event(1, "door_closed", now - timedelta(days=3))
        await fetcher.refresh()

        data = (await client.get("/api/dashboard/status")).json()

        assert data["status"]["has_data"] is True
        assert data["status"]["is_open"] is True
        assert data["status"]["human_relative_time"].endswith("seconds ago")
        assert data["summary"]["total"] == 2
        assert data["last_update"] is not None
        assert data["loading"] is False
        assert data["last_error"] is None

    async def test_status_reports_stale_data(self, client, supabase, fetcher):
        supabase.add_event(1, "open", datetime.now())
        await fetcher.refresh()
        supabase.failing.add("door_events")
        await fetcher.refresh()

        data = (await client.get("/api/dashboard/status")).json()

        assert data["status"]["has_data"] is True
        assert data["last_error"] is not None

    @pytest.mark.parametrize("raw,minutes,buckets", [
        (None, 60, 24), ("30", 30, 48), ("15", 15, 96), ("45", 60, 24), ("20", 15, 96), ("junk", 60, 24),
    ])
    async def test_histogram_granularity(self, client, raw, minutes, buckets):
        params = {"granularity": raw} if raw is not None else {}

        data = (await client.get("/api/dashboard/histogram", params=params)).json()

        assert data["granularity_minutes"] == minutes
        assert len(data["all_time"]["counts"]) == buckets
        assert len(data["today"]["counts"]) == buckets

    async def test_histogram_all_time_and_today(self, client, supabase, fetcher):
        now = datetime.now()
        supabase.add_event(3, "open", now)
        supabase.add_event(2, "open", now - timedelta(days=2))
        supabase.add_event(1, "close", now - timedelta(days=2, seconds=-5))
        await fetcher.refresh()

        data = (await client.get("/api/dashboard/histogram")).json()

        assert data["all_time"]["total"] == 2
        assert data["today"]["total"] == 1
        assert data["shared_max"] == data["all_time"]["max_count"]
        assert data["all_time"]["after_hours"][20] is True
        assert data["all_time"]["after_hours"][19] is False

    async def test_heatmap(self, client, supabase, fetcher):
        supabase.add_event(1, "open", datetime(2024, 1, 7, 10, 15))  # Sunday
        await fetcher.refresh()

        data = (await client.get("/api/dashboard/heatmap")).json()

        assert data["days"][0] == "Sunday"
        assert data["counts"][0][10] == 1
        assert data["max_count"] == 1

    async def test_timeseries_defaults(self, client):
        data = (await client.get("/api/dashboard/timeseries")).json()

        assert len(data["counts"]) == 200
        assert data["state"] == {
            "total_bars": 200,
            "interval_minutes": 60,
            "window_size": 24,
            "scroll_offset": 0,
            "max_scroll": 176,
        }
        assert len(data["visible"]["counts"]) == 24

    async def test_timeseries_clamps_everything(self, client):
        params = {"interval": "1", "window": "500", "scroll": "9999"}

        data = (await client.get("/api/dashboard/timeseries", params=params)).json()

        assert data["state"]["interval_minutes"] == 10
        assert data["state"]["window_size"] == 100
        assert data["state"]["scroll_offset"] == 100
        assert data["visible"]["start"] == 0

    async def test_timeseries_counts_recent_opens(self, client, supabase, fetcher):
        now = datetime.now()
        supabase.add_event(2, "open", now - timedelta(minutes=5))
        supabase.add_event(1, "open", now - timedelta(minutes=50))
        await fetcher.refresh()

        data = (await client.get("/api/dashboard/timeseries", params={"interval": "30"})).json()

        assert data["counts"][-1] == 1
        assert data["counts"][-2] == 1
        assert sum(data["counts"]) == 2

    async def test_after_hours_report(self, client, supabase):
        supabase.business_avg = 13.7
        supabase.sessions = [
            {"event_id": 2, "opened_at_sp": "2024-01-02T23:00:00", "duration_seconds": 40.0},
            {"event_id": 1, "opened_at_sp": "2024-01-01T21:30:00", "duration_seconds": 5.0},
        ]

        response = await client.get("/api/dashboard/after-hours")
        data = response.json()

        assert response.status_code == 200
        assert data["days"] == 7
        assert data["stats"]["business_hours_avg"] == 13.7
        assert [s["event_id"] for s in data["timeline"]] == [1, 2]
        assert [s["above_average"] for s in data["recent"]] == [True, False]
        assert data["daily_counts"] == [{"date": "2024-01-01", "count": 1}, {"date": "2024-01-02", "count": 1}]
        assert data["hourly_counts"][23] == 1
        assert data["hourly_after_hours"][21] is True
        assert data["hourly_after_hours"][20] is False

    async def test_after_hours_report_fails_as_a_whole(self, client, supabase):
        supabase.failing.add("get_after_hours_events")

        response = await client.get("/api/dashboard/after-hours", params={"days": "3"})

        assert response.status_code == 500
        assert set(response.json()) == {"error"}
