"""Postgres connection pool for the heart-rate store.

Uses ``asyncpg`` directly.  The pool is created with ``min_size=0`` so that
startup does not need the database to be reachable; connections are opened
on first use and a failing database only fails the cycle that touches it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import asyncpg

from src.config import Settings, get_settings

logger = logging.getLogger("heartsync.db")

# Module-level connection pool, initialized once at process startup
_pool: asyncpg.Pool | None = None


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool. Call once at startup."""
    global _pool
    s = settings or get_settings()
    _pool = await asyncpg.create_pool(
        host=s.db_host,
        port=s.db_port,
        database=s.db_name,
        user=s.db_user,
        password=s.db_password,
        min_size=0,
        max_size=s.db_pool_max_size,
        command_timeout=s.db_command_timeout_seconds,
    )
    logger.info(
        "Database pool initialized (%s:%s/%s, max=%d)",
        s.db_host,
        s.db_port,
        s.db_name,
        s.db_pool_max_size,
    )
    return _pool


async def close_pool() -> None:
    """Close the pool opened by ``init_pool``; a no-op when none is open."""
    global _pool
    pool, _pool = _pool, None
    if pool is None:
        return
    await pool.close()
    logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    """Return the process-wide pool.

    Raises:
        RuntimeError: ``init_pool`` has not run, or the pool was closed.
    """
    if _pool is None:
        raise RuntimeError("No database pool is open (init_pool() not awaited)")
    return _pool


@asynccontextmanager
async def get_connection(
    pool: asyncpg.Pool | None = None,
) -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a connection inside a transaction.

    Usage::

        async with get_connection() as conn:
            latest = await conn.fetchval("SELECT MAX(time) FROM heart_rate")
    """
    async with (pool or get_pool()).acquire() as conn:
        async with conn.transaction():
            yield conn
