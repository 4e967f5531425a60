"""Shared Pydantic base model for API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HeartSyncBase(BaseModel):
    """Base model with shared config for all decoded API payloads."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )
