"""Candle, PricePoint - time series points."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Candle(BaseModel):
    """One fixed-width bucket's closing value (pool candles)."""

    model_config = ConfigDict(frozen=True)

    period_start: int = Field(..., description="Unix seconds, aligned to the bucket width")
    close: str = Field(..., description="Decimal string")

    def to_wire(self) -> dict[str, str]:
        return {"periodStartUnix": str(self.period_start), "close": self.close}


class PricePoint(BaseModel):
    """One point of a spot or composite price series."""

    model_config = ConfigDict(frozen=True)

    time: int
    value: float
