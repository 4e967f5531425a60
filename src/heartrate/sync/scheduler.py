"""Fixed-interval scheduler for heart-rate sync cycles.

Runs one cycle immediately, then one per interval until asked to stop.
Cycles never overlap: ticks that fall due while a cycle is still running are
skipped rather than queued.  A failed cycle is logged and the schedule
carries on; nothing a cycle raises stops the loop.

Shutdown is cooperative.  Setting the stop event ends the wait between
cycles; a cycle already in flight runs to completion (writes are idempotent,
so an abandoned cycle is also safe to redo on the next start).
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import timedelta
from typing import Callable

from src.heartrate.base import SyncResult, utc_now
from src.heartrate.errors import HeartSyncError
from src.heartrate.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger("heartsync.sync.scheduler")

DEFAULT_INTERVAL = timedelta(minutes=5)


class SyncScheduler:
    """Drive a SyncOrchestrator on a fixed interval.

    Usage::

        scheduler = SyncScheduler(orchestrator, interval=timedelta(minutes=5))
        stop = asyncio.Event()
        await scheduler.run_forever(stop)
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval: timedelta = DEFAULT_INTERVAL,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: Runs a single cycle.
            interval:     Time between cycle starts.
            clock:        Monotonic clock in seconds (``time.monotonic`` by default).
        """
        if interval.total_seconds() <= 0:
            raise ValueError("Sync interval must be positive")
        self._orchestrator = orchestrator
        self._interval = interval.total_seconds()
        self._clock = clock or time.monotonic
        self._lock = asyncio.Lock()
        self.cycles_run = 0
        self.cycles_failed = 0
        self.last_result: SyncResult | None = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> SyncResult:
        """Run one cycle unless another is in progress.

        Never raises.  Failures are logged and returned as an 'error' result.

        Returns:
            SyncResult with status 'success', 'error' or 'skipped'.
        """
        if self._lock.locked():
            logger.warning("Previous sync cycle still running, skipping this tick")
            return SyncResult(status="skipped", finished_at=utc_now())

        async with self._lock:
            self.cycles_run += 1
            try:
                result = await self._orchestrator.run_cycle()
            except HeartSyncError as exc:
                self.cycles_failed += 1
                logger.error("Sync cycle failed [%s]: %s", exc.kind, exc)
                result = SyncResult(
                    status="error", error=str(exc), error_kind=exc.kind, finished_at=utc_now()
                )
            except Exception as exc:
                self.cycles_failed += 1
                logger.exception("Sync cycle failed with unexpected error: %s", exc)
                result = SyncResult(
                    status="error",
                    error=str(exc),
                    error_kind=type(exc).__name__,
                    finished_at=utc_now(),
                )

        self.last_result = result
        return result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Run cycles until ``stop_event`` is set.

        Args:
            stop_event: Set by the signal handler to request shutdown.
        """
        logger.info("Scheduler started (interval: %.0fs)", self._interval)
        next_run = self._clock()

        while not stop_event.is_set():
            await self.run_once()

            next_run += self._interval
            now = self._clock()
            if now > next_run:
                missed = math.floor((now - next_run) / self._interval) + 1
                next_run += missed * self._interval
                logger.warning(
                    "Sync cycle overran the interval, skipped %d tick(s)", missed
                )

            if await self._wait_for_stop(stop_event, next_run - now):
                break

        logger.info("Scheduler stopped after %d cycle(s)", self.cycles_run)

    @staticmethod
    async def _wait_for_stop(stop_event: asyncio.Event, delay: float) -> bool:
        """Sleep up to ``delay`` seconds; return True if stop was requested."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=max(delay, 0))
        except asyncio.TimeoutError:
            return False
        return True
