"""
Configuration
=============

Application configuration loaded from environment variables (and a .env
file, if there is one). Read once at startup, never reloaded.

Environment Variables:
    SUPABASE_URL: Base URL of the hosted event store (REQUIRED)
    SUPABASE_SERVICE_KEY: Service credential for the event store (REQUIRED)
    PORT: Port the API listens on (default: 3001)
    API_URL: Public base URL the dashboard uses to reach this API
    FRONTEND_URL: URL of the dashboard frontend, for CORS
    POLLING_INTERVAL: Seconds between event snapshot fetches (default: 5)
    EVENTS_LIMIT: Events per snapshot (default: 1000)
    REQUEST_TIMEOUT: Seconds before an outbound call gives up (default: 10)
    BUSINESS_HOURS_AVG_FALLBACK: Business-hours average duration used when
        the database has none (default: 13.7 seconds)
    AFTER_HOURS_END: Hour business hours start again (default: 7)
    STATUS_AFTER_HOURS_START: After-hours start for today's counters (default: 19)
    HISTOGRAM_AFTER_HOURS_START: After-hours start for the histograms (default: 20)
    TIMESERIES_AFTER_HOURS_START: After-hours start for the timeseries (default: 22)
    REPORT_AFTER_HOURS_START: After-hours start for the report page (default: 21)
    LOG_LEVEL: Logging level (default: INFO)

HEADS UP:
    The after-hours start hour was never agreed on. Each view keeps the
    boundary it always had until someone picks one.
"""

import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from locker_monitor.models import AfterHoursWindow


class ConfigError(RuntimeError):
    """Raised at startup when the environment is missing or malformed."""


def _read(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a {cast.__name__}, got {raw!r}")


class Config(BaseModel):
    """Typed settings. Build with Config.from_env()."""

    supabase_url: str = ""
    supabase_key: str = ""
    port: int = 3001
    api_url: str = "http://localhost:3001"
    frontend_url: str = "http://localhost:5173"
    polling_interval: int = Field(5, ge=1)
    events_limit: int = Field(1000, ge=1)
    request_timeout: float = Field(10.0, gt=0)
    business_hours_avg_fallback: float = 13.7

    after_hours_end: int = Field(7, ge=0, le=23)
    status_after_hours_start: int = Field(19, ge=0, le=23)
    histogram_after_hours_start: int = Field(20, ge=0, le=23)
    timeseries_after_hours_start: int = Field(22, ge=0, le=23)
    report_after_hours_start: int = Field(21, ge=0, le=23)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Read settings from the environment.

        Args:
            env: Mapping to read from. Default: os.environ after loading .env
        """
        if env is None:
            load_dotenv()
            env = os.environ

        try:
            return cls._build(env)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def _build(cls, env: Mapping[str, str]) -> "Config":
        return cls(
            supabase_url=_read(env, "SUPABASE_URL", "", str).rstrip("/"),
            supabase_key=_read(env, "SUPABASE_SERVICE_KEY", "", str),
            port=_read(env, "PORT", 3001, int),
            api_url=_read(env, "API_URL", "http://localhost:3001", str),
            frontend_url=_read(env, "FRONTEND_URL", "http://localhost:5173", str),
            polling_interval=_read(env, "POLLING_INTERVAL", 5, int),
            events_limit=_read(env, "EVENTS_LIMIT", 1000, int),
            request_timeout=_read(env, "REQUEST_TIMEOUT", 10.0, float),
            business_hours_avg_fallback=_read(env, "BUSINESS_HOURS_AVG_FALLBACK", 13.7, float),
            after_hours_end=_read(env, "AFTER_HOURS_END", 7, int),
            status_after_hours_start=_read(env, "STATUS_AFTER_HOURS_START", 19, int),
            histogram_after_hours_start=_read(env, "HISTOGRAM_AFTER_HOURS_START", 20, int),
            timeseries_after_hours_start=_read(env, "TIMESERIES_AFTER_HOURS_START", 22, int),
            report_after_hours_start=_read(env, "REPORT_AFTER_HOURS_START", 21, int),
            log_level=_read(env, "LOG_LEVEL", "INFO", str).upper(),
        )

    def require_upstream(self) -> None:
        """Fail fast if we can't reach the event store at all."""
        missing = [
            name for name, value in (
                ("SUPABASE_URL", self.supabase_url),
                ("SUPABASE_SERVICE_KEY", self.supabase_key),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    @property
    def cors_origins(self) -> list[str]:
        origins = [
            self.frontend_url,
            "http://localhost:5173",    # Vite dev server
            "http://127.0.0.1:5173",
        ]
        return list(dict.fromkeys(origins))

    # After-hours windows, one per view

    @property
    def status_window(self) -> AfterHoursWindow:
        return AfterHoursWindow(start_hour=self.status_after_hours_start, end_hour=self.after_hours_end)

    @property
    def histogram_window(self) -> AfterHoursWindow:
        return AfterHoursWindow(start_hour=self.histogram_after_hours_start, end_hour=self.after_hours_end)

    @property
    def timeseries_window(self) -> AfterHoursWindow:
        return AfterHoursWindow(start_hour=self.timeseries_after_hours_start, end_hour=self.after_hours_end)

    @property
    def report_window(self) -> AfterHoursWindow:
        return AfterHoursWindow(start_hour=self.report_after_hours_start, end_hour=self.after_hours_end)
