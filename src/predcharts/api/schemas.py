"""Pydantic schemas for API responses that are not chart models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from predcharts.models.chart import WireCandle


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"
    backend: str | None = None
    warmer_enabled: bool | None = None


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. upstream_unavailable, bad_ticker")


# --- Spot ---
class SpotCandlesResponse(BaseModel):
    spotCandles: list[WireCandle]


# --- Cache ---
class CacheStatsResponse(BaseModel):
    backend: str
    tiers: list[dict[str, Any]]
    warm_list: int
