"""Whoop metrics-service client for heart-rate samples.

API base: https://api.prod.whoop.com

Endpoint used:
    /metrics-service/v1/metrics/user/{user_id}  (name=heart_rate, apiVersion=7)

The client classifies failures but never retries; the orchestrator owns the
retry policy.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
from pydantic import ValidationError

from src.heartrate.base import Credential, HeartRateSample, SyncWindow
from src.heartrate.errors import AuthExpired, FetchFailed
from src.models.metrics import MetricsResponse

logger = logging.getLogger("heartsync.metrics")

_WHOOP_API_BASE = "https://api.prod.whoop.com"
_METRICS_PATH = "/metrics-service/v1/metrics/user/{user_id}"
_AUTH_STATUSES = frozenset({401, 403})
_MAX_BODY_CHARS = 500


def format_api_timestamp(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_heart_rate_response(payload: object) -> list[HeartRateSample]:
    """Convert a metrics-service JSON body into samples, preserving order.

    Raises:
        ValidationError: The body does not match ``MetricsResponse``.
    """
    body = MetricsResponse.model_validate(payload)
    return [HeartRateSample(bpm=round(v.data), time=v.time) for v in body.values]


class MetricsClient:
    """Fetch heart-rate samples for one user over a time window."""

    METRIC_NAME = "heart_rate"
    API_VERSION = "7"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = _WHOOP_API_BASE,
        step_seconds: int = 60,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            http_client:     Optional pre-configured httpx client (shared or for testing).
            base_url:        Whoop API base URL.
            step_seconds:    Sampling step requested from the API.
            timeout_seconds: Request timeout when no client is injected.
        """
        self._http_client = http_client
        self._base_url = base_url.rstrip("/")
        self._step_seconds = step_seconds
        self._timeout = timeout_seconds

    def build_request(
        self, credential: Credential, window: SyncWindow
    ) -> tuple[str, dict[str, str], dict[str, str]]:
        """Return the (url, params, headers) for a heart-rate fetch."""
        url = self._base_url + _METRICS_PATH.format(user_id=credential.user_id)
        params = {
            "apiVersion": self.API_VERSION,
            "name": self.METRIC_NAME,
            "start": format_api_timestamp(window.start),
            "end": format_api_timestamp(window.end),
            "step": str(self._step_seconds),
            "order": "t",
        }
        headers = {"Authorization": f"Bearer {credential.access_token}"}
        return url, params, headers

    async def fetch_heart_rate(
        self, credential: Credential, window: SyncWindow
    ) -> list[HeartRateSample]:
        """Fetch heart-rate samples spanning ``window``.

        Args:
            credential: Valid Whoop credential (supplies user id and bearer token).
            window:     Time range to fetch.

        Returns:
            Samples in ascending time order.

        Raises:
            AuthExpired: The API answered 401 or 403.
            FetchFailed: Any other non-2xx status, a transport error or
                         timeout, or an undecodable body.
        """
        url, params, headers = self.build_request(credential, window)

        try:
            response = await self._get(url, params, headers)
        except httpx.HTTPError as exc:
            raise FetchFailed(None, f"{type(exc).__name__}: {exc}") from exc

        status = response.status_code
        if status in _AUTH_STATUSES:
            raise AuthExpired("Token expired or invalid", status_code=status)
        if not 200 <= status < 300:
            raise FetchFailed(status, response.text[:_MAX_BODY_CHARS])

        try:
            samples = parse_heart_rate_response(response.json())
        except (ValueError, ValidationError) as exc:
            raise FetchFailed(status, f"Unexpected response body: {exc}") from exc

        logger.debug("Fetched %d heart rate samples for %s", len(samples), window)
        return samples

    async def _get(
        self, url: str, params: dict[str, str], headers: dict[str, str]
    ) -> httpx.Response:
        if self._http_client:
            return await self._http_client.get(url, params=params, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, params=params, headers=headers)
