from __future__ import annotations

import asyncio
import contextlib
import logging
import time

import httpx
from fastapi import FastAPI, Request

from app.api import api_router
from app.config import get_if_api_key, settings
from app.ingestors import InfiniteFlightGateway
from app.services import AirportIndex, CallbackNotifier, PollingScheduler, TrackerRegistry

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("flightwatch")


def _start_scheduler(app: FastAPI) -> None:
    try:
        api_key = settings.if_api_key or get_if_api_key()
    except RuntimeError:
        logger.warning(
            "Polling scheduler enabled but no Infinite Flight API key is available; skipping startup"
        )
        return

    airports = AirportIndex.from_csv(settings.airports_csv)
    gateway = InfiniteFlightGateway(api_key=api_key)
    scheduler = PollingScheduler(
        registry=app.state.registry,
        gateway=gateway,
        airports=airports,
        notifier=app.state.notifier,
    )
    app.state.scheduler = scheduler
    app.state.scheduler_task = asyncio.create_task(scheduler.run())
    logger.info("Polling scheduler started")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown lifecycle."""

    app.state.callback_client = httpx.AsyncClient(timeout=settings.callback_timeout)
    app.state.notifier = CallbackNotifier(http_client=app.state.callback_client)
    app.state.registry = TrackerRegistry(notifier=app.state.notifier)
    logger.info("Tracker registry initialized (default server %s)", settings.default_server)

    if settings.scheduler_enabled:
        _start_scheduler(app)

    try:
        yield
    finally:
        task = getattr(app.state, "scheduler_task", None)
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await app.state.notifier.drain()
        await app.state.callback_client.aclose()


app = FastAPI(title="Flightwatch Tracker", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log basic request information for observability."""

    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP %s %s -> %s (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(api_router)


@app.get("/", summary="Root")
def read_root() -> dict[str, str]:
    """Basic root endpoint for quick verification."""

    return {"message": "Flightwatch tracker is running"}
