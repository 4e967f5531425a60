"""Shared fixtures and test doubles for heart-rate sync tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Sequence
from unittest.mock import AsyncMock, MagicMock

import jwt as pyjwt
import pytest

from src.heartrate.base import (
    Credential,
    HeartRateSample,
    LoginProvider,
    WatermarkStore,
    ms_to_datetime,
)

TEST_USER_ID = 123456
# 2026-02-23 12:00:00 UTC
TEST_NOW = datetime(2026, 2, 23, 12, 0, 0, tzinfo=timezone.utc)
TEST_NOW_MS = 1771848000000


# ---------------------------------------------------------------------------
# Tokens and credentials
# ---------------------------------------------------------------------------


def build_token(claims: dict[str, Any]) -> str:
    return pyjwt.encode(claims, "heartsync-test-signing-key-0123456789abcdef", algorithm="HS256")


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build a signed JWT with Whoop-style claims."""

    def _make(
        user_id: Any = TEST_USER_ID, exp: Any = TEST_NOW_MS // 1000 + 3600, **extra: Any
    ) -> str:
        claims: dict[str, Any] = {"sub": "abc-123", **extra}
        if user_id is not None:
            claims["custom:user_id"] = user_id
        if exp is not None:
            claims["exp"] = exp
        return build_token(claims)

    return _make


@pytest.fixture
def make_credential() -> Callable[..., Credential]:
    def _make(
        user_id: int = TEST_USER_ID,
        expires_at: int = TEST_NOW_MS + 3_600_000,
        access_token: str = "access-token",
    ) -> Credential:
        return Credential(
            user_id=user_id,
            access_token=access_token,
            refresh_token="refresh-token",
            expires_at=expires_at,
        )

    return _make


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class FakeLogin(LoginProvider):
    """Returns canned credentials in order; the last one repeats."""

    def __init__(self, credentials: Sequence[Credential]) -> None:
        self._credentials = list(credentials)
        self.calls = 0

    async def login(self) -> Credential:
        self.calls += 1
        index = min(self.calls, len(self._credentials)) - 1
        return self._credentials[index]


class FakeWatermarkStore(WatermarkStore):
    """In-memory store enforcing (user_id, time) uniqueness."""

    def __init__(self, rows: dict[tuple[int, int], int] | None = None) -> None:
        self.rows: dict[tuple[int, int], int] = dict(rows or {})
        self.insert_calls = 0
        self.read_calls = 0

    async def get_high_water_mark(self) -> datetime | None:
        self.read_calls += 1
        if not self.rows:
            return None
        return ms_to_datetime(max(time for _, time in self.rows))

    async def insert_samples(self, samples: Sequence[HeartRateSample], user_id: int) -> int:
        if not samples:
            return 0
        self.insert_calls += 1
        inserted = 0
        for sample in samples:
            key = (user_id, sample.time)
            if key not in self.rows:
                self.rows[key] = sample.bpm
                inserted += 1
        return inserted


@pytest.fixture
def fake_login_factory() -> Callable[..., FakeLogin]:
    return FakeLogin


@pytest.fixture
def fake_store_factory() -> Callable[..., FakeWatermarkStore]:
    return FakeWatermarkStore


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: TEST_NOW


# ---------------------------------------------------------------------------
# Mock HTTP / DB clients
# ---------------------------------------------------------------------------


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Build a mock httpx.Response."""

    def _make(status_code: int = 200, json_body: Any = None, text: str = "") -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.text = text
        response.json = MagicMock(return_value=json_body if json_body is not None else {})
        return response

    return _make


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient for testing the metrics client without real API calls."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 200
    response.json = MagicMock(return_value={"name": "heart_rate", "values": []})
    client.get = AsyncMock(return_value=response)
    return client


@pytest.fixture
def mock_pool() -> tuple[MagicMock, MagicMock]:
    """Mock asyncpg pool whose acquire() / transaction() act as async context managers."""
    conn = MagicMock()
    conn.execute = AsyncMock(return_value="CREATE TABLE")
    conn.fetchval = AsyncMock(return_value=None)
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=False)
    conn.transaction = MagicMock(return_value=transaction)

    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=False)
    pool = MagicMock()
    pool.acquire = MagicMock(return_value=acquire)
    return pool, conn
