"""
Snack Locker Monitor - Backend API
==================================
FastAPI application that watches the snack locker door.

ARCHITECTURE:
    The door sensor writes open/close events straight into a hosted
    database. This backend reads them back, keeps a fresh copy in memory
    and serves the dashboard.

    [Door Sensor] ---> [Hosted Event Store (Supabase)]
                                   ^
                                   | every 5 seconds + on demand
                                   |
                            [This Backend] <--HTTPS-- [Dashboard Frontend]

HOW TO RUN:
    # Install
    pip install -e .

    # Configure (see locker_monitor/config.py for every variable)
    cp env.example.txt .env
    # Edit .env with your Supabase URL and service key

    # Run the server
    locker-monitor
    # or: uvicorn locker_monitor.main:create_app --factory --reload --port 3001

API DOCUMENTATION:
    After starting the server, visit:
    - Swagger UI: http://localhost:3001/docs
    - ReDoc: http://localhost:3001/redoc
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from locker_monitor import __version__
from locker_monitor.config import Config
from locker_monitor.routers import clear_services, dashboard_router, events_router, set_services
from locker_monitor.services import EventFetcher, EventStoreError, EventStoreService

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    """Send log lines to stderr as "[12:00:00] message"."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='[%(asctime)s] %(message)s',
        datefmt='%H:%M:%S',
        handlers=[logging.StreamHandler(sys.stderr)]
    )


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

def build_lifespan(settings: Config):
    """
    Make the lifespan handler.

    STARTUP:
        1. Check config (fail right here if the event store isn't configured)
        2. Create the event store client and the fetcher
        3. Inject them into the routers
        4. First fetch + start the 5-second refresh job

    SHUTDOWN:
        1. Stop the refresh job
        2. Close the HTTP client
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ========== STARTUP ==========
        settings.require_upstream()
        configure_logging(settings.log_level)

        logger.info("=" * 60)
        logger.info("SNACK LOCKER MONITOR - Starting Backend")
        logger.info("=" * 60)

        store = EventStoreService(
            base_url=settings.supabase_url,
            service_key=settings.supabase_key,
            request_timeout=settings.request_timeout,
            business_hours_avg_fallback=settings.business_hours_avg_fallback,
        )
        fetcher = EventFetcher(
            store=store,
            polling_interval=settings.polling_interval,
            limit=settings.events_limit,
        )

        set_services(store, fetcher, settings)
        await fetcher.start()

        logger.info(f"   Event store: {settings.supabase_url}")
        logger.info(f"   Polling interval: {settings.polling_interval} seconds")
        logger.info(f"   Public API URL: {settings.api_url}")
        logger.info(f"   After-hours end: {settings.after_hours_end:02d}:00")
        logger.info("=" * 60)

        yield  # Application runs here

        # ========== SHUTDOWN ==========
        logger.info("Shutting down...")
        await fetcher.stop()
        await store.close()
        clear_services()
        logger.info("Shutdown complete")

    return lifespan


# =============================================================================
# ERROR HANDLERS
# =============================================================================
# Every error leaves this API as {"error": "<message>"}

async def event_store_error_handler(request: Request, exc: EventStoreError):
    logger.error(f"[API] {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        config: Settings to use. Default: read from the environment
    """
    settings = config or Config.from_env()

    app = FastAPI(
        title="Snack Locker Monitor API",
        description="""
## Overview

Live door activity for the snack locker: current status, time-of-day
histograms, a weekly heatmap, a rolling timeseries and after-hours reports.

## How It Works

1. The door sensor writes open/close events to the hosted event store
2. Every 5 seconds this backend fetches the latest events
3. Dashboard endpoints compute their views from that copy

## Error Format

Every error looks like `{"error": "<message>"}`. Event store failures are always HTTP 500.
        """,
        version=__version__,
        lifespan=build_lifespan(settings),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EventStoreError, event_store_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(events_router)
    app.include_router(dashboard_router)

    @app.get(
        "/",
        summary="API Information",
        description="Get basic API information and available endpoints."
    )
    async def root():
        """Root endpoint with API overview."""
        return {
            "name": "Snack Locker Monitor API",
            "version": __version__,
            "api_url": settings.api_url,
            "documentation": {
                "swagger": "/docs",
                "redoc": "/redoc",
                "openapi": "/openapi.json"
            },
            "endpoints": {
                "events": "GET /api/events?limit=1000",
                "after_hours_stats": "GET /api/after-hours-stats?days=7",
                "after_hours_events": "GET /api/after-hours-events?days=30",
                "dashboard": {
                    "status": "GET /api/dashboard/status",
                    "histogram": "GET /api/dashboard/histogram?granularity=60",
                    "heatmap": "GET /api/dashboard/heatmap",
                    "timeseries": "GET /api/dashboard/timeseries?interval=60&window=24&scroll=0",
                    "after_hours": "GET /api/dashboard/after-hours?days=7"
                },
                "health": "GET /health"
            }
        }

    @app.get(
        "/health",
        summary="Health Check",
        description="Check if the backend is running."
    )
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


def run():
    """Console entry point: read the port from the environment and serve."""
    config = Config.from_env()
    config.require_upstream()
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    run()
