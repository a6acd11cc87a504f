"""HopSpec, TickerSpec, SpotResult - composite price expressions and their evaluation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from predcharts.models.candle import PricePoint


class HopSpec(BaseModel):
    """One pairwise leg: a base/quote symbol pair or a direct pool address."""

    model_config = ConfigDict(frozen=True)

    base: str | None = None
    quote: str | None = None
    pool_address: str | None = None
    invert: bool = False
    rate_provider: str | None = None

    @property
    def label(self) -> str:
        if self.pool_address:
            return self.pool_address
        return f"{self.base}/{self.quote}"


class TickerSpec(BaseModel):
    """Parsed composite price request."""

    model_config = ConfigDict(frozen=True)

    hops: tuple[HopSpec, ...]
    interval: str = "hour"
    limit: int = Field(500, gt=0)
    network: str = "xdai"
    invert: bool = False
    multi_hop: bool = False

    @property
    def rate_provider(self) -> str | None:
        """Embedded rate provider; only meaningful on the single-hop path."""
        if self.multi_hop or not self.hops:
            return None
        return self.hops[0].rate_provider


class SpotResult(BaseModel):
    """Outcome of evaluating a ticker: a series plus latest value, or an error."""

    model_config = ConfigDict(frozen=True)

    candles: tuple[PricePoint, ...] = ()
    price: float | None = None
    rate: float | None = None
    pool: str | None = None
    error: str | None = None
    # Upstream outage or rate limit; worth retrying on the next request.
    transient: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
