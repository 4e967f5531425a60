"""Pydantic models for the Whoop metrics-service response."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from src.heartrate.base import MAX_EPOCH_MS
from src.models.base import HeartSyncBase


class MetricValue(HeartSyncBase):
    data: float
    time: int = Field(ge=0, le=MAX_EPOCH_MS)  # epoch ms


class MetricsResponse(HeartSyncBase):
    """Body of ``GET /metrics-service/v1/metrics/user/{user_id}``.

    ``values`` arrives sorted by time ascending when ``order=t`` is requested.
    """

    name: str | None = None
    start: Any = None
    values: list[MetricValue] = Field(default_factory=list)
