"""One heart-rate synchronization cycle.

Workflow:
1. Reuse the cached credential, or log in and cache the new one
2. Read the watermark and compute the fetch window
3. Fetch heart-rate samples for the window
4. On AuthExpired: clear the cache, log in again, retry the fetch once
5. Persist samples (idempotent on user_id + time) and report counts

Every failure other than the first AuthExpired propagates to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from src.heartrate.auth.session import SessionCache
from src.heartrate.base import (
    DEFAULT_LOOKBACK,
    Credential,
    HeartRateSample,
    LoginProvider,
    SyncResult,
    WatermarkStore,
    compute_sync_window,
    datetime_to_ms,
    utc_now,
)
from src.heartrate.errors import AuthExpired
from src.heartrate.metrics_client import MetricsClient

logger = logging.getLogger("heartsync.sync.orchestrator")


class SyncOrchestrator:
    """Run fetch-then-persist cycles for the configured Whoop account.

    Usage::

        orchestrator = SyncOrchestrator(
            session=SessionCache(),
            login=BrowserLogin(email, password),
            client=MetricsClient(http_client),
            store=PostgresWatermarkStore(pool),
        )
        result = await orchestrator.run_cycle()
    """

    def __init__(
        self,
        session: SessionCache,
        login: LoginProvider,
        client: MetricsClient,
        store: WatermarkStore,
        lookback: timedelta = DEFAULT_LOOKBACK,
        max_window: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            session:    Credential cache shared across cycles.
            login:      Produces a fresh credential via interactive login.
            client:     Metrics API client.
            store:      Watermark store for reads and idempotent writes.
            lookback:   Window start when storage is empty.
            max_window: Optional cap on a single cycle's window length.
            clock:      Returns the current aware UTC datetime.
        """
        self._session = session
        self._login = login
        self._client = client
        self._store = store
        self._lookback = lookback
        self._max_window = max_window
        self._clock = clock or utc_now

    async def run_cycle(self) -> SyncResult:
        """Execute one synchronization cycle.

        Returns:
            SyncResult with status 'success'.

        Raises:
            HeartSyncError: Any failure that ends the cycle (login, credential,
                            fetch, storage, or a second AuthExpired).
        """
        result = SyncResult(started_at=self._clock())

        credential = self._session.get()
        if credential is None:
            credential = await self._relogin(result)

        watermark = await self._store.get_high_water_mark()
        window = compute_sync_window(
            watermark, result.started_at, self._lookback, self._max_window
        )
        result.window = window
        if watermark is not None:
            result.watermark = datetime_to_ms(watermark)

        logger.info("Fetching heart rate from %s", window)

        try:
            samples = await self._client.fetch_heart_rate(credential, window)
        except AuthExpired:
            logger.info("Token expired, re-authenticating...")
            self._session.clear()
            credential = await self._relogin(result)
            result.retried = True
            samples = await self._client.fetch_heart_rate(credential, window)

        result.user_id = credential.user_id
        result.fetched = len(samples)

        if not samples:
            logger.info("No new data points")
            return self._finish(result)

        result.inserted = await self._store.insert_samples(samples, credential.user_id)
        result.watermark = _latest_time(samples, result.watermark)
        logger.info(
            "%d new rows inserted (%d points fetched)", result.inserted, result.fetched
        )
        return self._finish(result)

    async def _relogin(self, result: SyncResult) -> Credential:
        credential = await self._login.login()
        self._session.set(credential)
        result.logins += 1
        return credential

    def _finish(self, result: SyncResult) -> SyncResult:
        result.status = "success"
        result.finished_at = self._clock()
        return result


def _latest_time(samples: list[HeartRateSample], previous: int | None) -> int:
    latest = max(s.time for s in samples)
    return latest if previous is None else max(latest, previous)
