"""Postgres-backed watermark store for heart-rate samples.

Dedup key:
    heart_rate: (user_id, time) PRIMARY KEY; conflicting rows are skipped,
    so re-inserting an overlapping window is a no-op for existing samples.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

import asyncpg

from src.heartrate.base import HeartRateSample, WatermarkStore
from src.heartrate.errors import StorageFailure
from src.services.database import get_connection

logger = logging.getLogger("heartsync.db")

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS heart_rate (
        time       TIMESTAMPTZ NOT NULL,
        bpm        INTEGER NOT NULL,
        user_id    INTEGER NOT NULL,
        synced_at  TIMESTAMPTZ DEFAULT NOW(),
        PRIMARY KEY (user_id, time)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_heart_rate_time ON heart_rate (time DESC)",
)

HIGH_WATER_MARK_QUERY = "SELECT MAX(time) FROM heart_rate"

# One round trip for the whole batch: arrays are unnested server-side
INSERT_SAMPLES_QUERY = """
    INSERT INTO heart_rate (time, bpm, user_id)
    SELECT s.time, s.bpm, $3
    FROM unnest($1::timestamptz[], $2::integer[]) AS s(time, bpm)
    ON CONFLICT (user_id, time) DO NOTHING
"""

_STORAGE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def rows_affected(status: str) -> int:
    """Parse the row count from an asyncpg command status such as ``INSERT 0 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        logger.warning("Could not parse command status: %r", status)
        return 0


class PostgresWatermarkStore(WatermarkStore):
    """Watermark store on the ``heart_rate`` table.

    The schema is created on first use rather than at startup, so an
    unreachable database fails a single cycle instead of the process.
    """

    def __init__(self, pool: asyncpg.Pool | None = None) -> None:
        """Initialize the store.

        Args:
            pool: asyncpg pool; defaults to the process-wide pool from
                  ``src.services.database``.
        """
        self._pool = pool
        self._schema_ready = False

    async def ensure_schema(self) -> None:
        """Create the table and index once per process."""
        if self._schema_ready:
            return
        async with get_connection(self._pool) as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        self._schema_ready = True
        logger.info("Schema initialized")

    async def get_high_water_mark(self) -> datetime | None:
        try:
            await self.ensure_schema()
            async with get_connection(self._pool) as conn:
                return await conn.fetchval(HIGH_WATER_MARK_QUERY)
        except _STORAGE_ERRORS as exc:
            raise StorageFailure(f"Could not read high water mark: {exc}") from exc

    async def insert_samples(
        self, samples: Sequence[HeartRateSample], user_id: int
    ) -> int:
        if not samples:
            return 0

        times = [s.timestamp for s in samples]
        bpms = [s.bpm for s in samples]
        try:
            await self.ensure_schema()
            async with get_connection(self._pool) as conn:
                status = await conn.execute(INSERT_SAMPLES_QUERY, times, bpms, user_id)
        except _STORAGE_ERRORS as exc:
            raise StorageFailure(
                f"Could not insert {len(samples)} samples for user {user_id}: {exc}"
            ) from exc

        inserted = rows_affected(status)
        logger.debug(
            "Inserted %d of %d samples for user %s", inserted, len(samples), user_id
        )
        return inserted
