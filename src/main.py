"""heartsync - Whoop heart-rate sync daemon entry point.

Run locally:
    python -m src.main
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from datetime import timedelta

import httpx

from src.config import Settings, get_settings
from src.heartrate.auth.browser_login import BrowserLogin
from src.heartrate.auth.session import SessionCache
from src.heartrate.errors import ConfigMissing
from src.heartrate.metrics_client import MetricsClient
from src.heartrate.store import PostgresWatermarkStore
from src.heartrate.sync.orchestrator import SyncOrchestrator
from src.heartrate.sync.scheduler import SyncScheduler
from src.services.database import close_pool, init_pool

logger = logging.getLogger("heartsync")


# ---------- Logging ----------

def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- Wiring ----------

def build_scheduler(
    settings: Settings,
    http_client: httpx.AsyncClient,
    store: PostgresWatermarkStore,
) -> SyncScheduler:
    login = BrowserLogin(
        email=settings.login_email,
        password=settings.login_password,
        origin=settings.login_origin,
        timeout_seconds=settings.login_timeout_seconds,
        headless=settings.browser_headless,
    )
    client = MetricsClient(
        http_client=http_client,
        base_url=settings.api_base_url,
        step_seconds=settings.metrics_step_seconds,
    )
    max_window = (
        timedelta(hours=settings.max_window_hours) if settings.max_window_hours else None
    )
    orchestrator = SyncOrchestrator(
        session=SessionCache(),
        login=login,
        client=client,
        store=store,
        lookback=timedelta(hours=settings.lookback_hours),
        max_window=max_window,
    )
    return SyncScheduler(orchestrator, interval=timedelta(minutes=settings.sync_interval_minutes))


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down after the current cycle...", sig.name)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown, sig)


# ---------- Lifecycle ----------

async def run(settings: Settings, stop_event: asyncio.Event | None = None) -> None:
    """Run the sync loop until a termination signal arrives."""
    logger.info(
        "%s v%s starting (interval: %dm)",
        settings.app_name,
        settings.app_version,
        settings.sync_interval_minutes,
    )
    stop_event = stop_event or asyncio.Event()
    _install_signal_handlers(stop_event)

    pool = await init_pool(settings)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http_client:
            scheduler = build_scheduler(settings, http_client, PostgresWatermarkStore(pool))
            await scheduler.run_forever(stop_event)
    finally:
        await close_pool()
        logger.info("%s shut down", settings.app_name)


def main() -> None:
    try:
        settings = get_settings()
    except ConfigMissing as exc:
        configure_logging()
        logger.error("%s", exc)
        sys.exit(1)

    configure_logging(settings.log_level)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
