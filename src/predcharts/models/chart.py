"""Chart response - market summary plus YES/NO/spot candle series, in the wire shape the UI reads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class WireCandle(_Frozen):
    periodStartUnix: str
    close: str


class OutcomePrice(_Frozen):
    price_usd: float = 0.0
    pool_id: str = ""


class SpotPrice(_Frozen):
    price_usd: float | None = None
    pool_ticker: str | None = None


class BaseToken(_Frozen):
    tokenSymbol: str = "TOKEN"


class CurrencyToken(_Frozen):
    tokenSymbol: str = "CURRENCY"
    stableSymbol: str | None = None


class CompanyTokens(_Frozen):
    base: BaseToken = Field(default_factory=BaseToken)
    currency: CurrencyToken = Field(default_factory=CurrencyToken)


class Timeline(_Frozen):
    start: int
    end: int
    chain_id: int
    chart_start_range: int | None = None
    close_timestamp: int | None = None
    price_precision: int | None = None
    currency_rate: float | None = None


class PoolVolume(_Frozen):
    status: str = "ok"
    pool_id: str
    volume: str = "0"
    volume_usd: str = "0"


class Volumes(_Frozen):
    conditional_yes: PoolVolume | None = None
    conditional_no: PoolVolume | None = None


class MarketSummary(_Frozen):
    event_id: str | None = None
    conditional_yes: OutcomePrice = Field(default_factory=OutcomePrice)
    conditional_no: OutcomePrice = Field(default_factory=OutcomePrice)
    spot: SpotPrice = Field(default_factory=SpotPrice)
    company_tokens: CompanyTokens = Field(default_factory=CompanyTokens)
    timeline: Timeline
    volume: Volumes = Field(default_factory=Volumes)


class ChartCandles(_Frozen):
    yes: tuple[WireCandle, ...] = ()
    no: tuple[WireCandle, ...] = ()
    spot: tuple[WireCandle, ...] = ()


class ChartResponse(_Frozen):
    market: MarketSummary
    candles: ChartCandles = Field(default_factory=ChartCandles)
