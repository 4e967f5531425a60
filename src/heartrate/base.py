"""Core data types and collaborator interfaces for the heart-rate sync.

The orchestrator only talks to the outside world through the two ABCs
defined here (``LoginProvider`` and ``WatermarkStore``) plus the metrics
client, so every collaborator can be swapped for a test double.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Sequence

DEFAULT_LOOKBACK = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# Latest instant a datetime can hold, in epoch ms
MAX_EPOCH_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS


def ms_to_datetime(value: int) -> datetime:
    """Convert an epoch-millisecond instant to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


# ---------------------------------------------------------------------------
# Credential
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credential:
    """Bearer credential extracted from a completed web login.

    Attributes:
        user_id:       External Whoop user identifier.
        access_token:  Signed JWT sent as the bearer token.
        refresh_token: Refresh token cookie value (empty if none was set).
        expires_at:    Token expiry as epoch milliseconds.
    """

    user_id: int
    access_token: str
    refresh_token: str
    expires_at: int

    @property
    def expires_at_datetime(self) -> datetime:
        return ms_to_datetime(self.expires_at)

    def is_usable(self, now_ms: int, margin_ms: int) -> bool:
        """Return True only strictly before ``expires_at - margin_ms``."""
        return now_ms < self.expires_at - margin_ms

    def __repr__(self) -> str:
        return (
            f"Credential(user_id={self.user_id}, "
            f"expires_at={self.expires_at_datetime.isoformat()})"
        )


# ---------------------------------------------------------------------------
# Samples and windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HeartRateSample:
    """One heart-rate observation: beats per minute at an epoch-ms instant."""

    bpm: int
    time: int

    @property
    def timestamp(self) -> datetime:
        return ms_to_datetime(self.time)


@dataclass(frozen=True)
class SyncWindow:
    """Inclusive time range requested from the metrics API."""

    start: datetime
    end: datetime

    @property
    def span(self) -> timedelta:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


def compute_sync_window(
    watermark: datetime | None,
    now: datetime,
    lookback: timedelta = DEFAULT_LOOKBACK,
    max_span: timedelta | None = None,
) -> SyncWindow:
    """Return the fetch window for one cycle.

    The window starts exactly at the watermark (the backend skips the
    already-stored sample at that instant) or ``now - lookback`` on first run,
    and ends at ``now``.  With ``max_span`` set, a window that grew past it
    after an outage is clamped so that later cycles catch up incrementally.

    Args:
        watermark: Highest stored timestamp, or None when storage is empty.
        now:       Wall-clock time at cycle start.
        lookback:  Default lookback when there is no watermark.
        max_span:  Optional cap on the window length.

    Returns:
        SyncWindow.
    """
    start = watermark if watermark is not None else now - lookback
    end = now
    if max_span is not None and end - start > max_span:
        end = start + max_span
    return SyncWindow(start=start, end=end)


# ---------------------------------------------------------------------------
# Cycle outcome
# ---------------------------------------------------------------------------


@dataclass
class SyncResult:
    """Outcome of one synchronization cycle.

    Attributes:
        status:      'success', 'error' or 'skipped'.
        fetched:     Samples returned by the metrics API.
        inserted:    Rows actually written (duplicates excluded).
        window:      The window that was fetched, if one was computed.
        user_id:     Whoop user the samples were stored under.
        logins:      Interactive logins performed during the cycle.
        retried:     True when the fetch was retried after AuthExpired.
        watermark:   Latest sample time seen this cycle in epoch ms, falling
                     back to the stored watermark when nothing was fetched.
        error:       Error message if status == 'error'.
        error_kind:  ``HeartSyncError.kind`` of the failure.
    """

    status: str = "success"
    fetched: int = 0
    inserted: int = 0
    window: SyncWindow | None = None
    user_id: int | None = None
    logins: int = 0
    retried: bool = False
    watermark: int | None = None
    error: str | None = None
    error_kind: str | None = None
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class LoginProvider(ABC):
    """Produces a fresh Credential by completing an interactive login."""

    @abstractmethod
    async def login(self) -> Credential:
        """Log in and return the extracted credential.

        Raises:
            LoginFailed: The login flow did not complete.
            MalformedCredential: The session token could not be decoded.
        """


class WatermarkStore(ABC):
    """Persistence for heart-rate samples keyed by (user_id, time)."""

    @abstractmethod
    async def get_high_water_mark(self) -> datetime | None:
        """Return the latest stored sample time, or None if nothing is stored."""

    @abstractmethod
    async def insert_samples(
        self, samples: Sequence[HeartRateSample], user_id: int
    ) -> int:
        """Insert samples, silently skipping existing (user_id, time) pairs.

        Must return 0 without any I/O when ``samples`` is empty.

        Returns:
            Number of rows actually inserted.
        """
