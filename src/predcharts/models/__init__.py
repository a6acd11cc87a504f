"""Canonical schema (Pydantic) - Proposal, Pool, Candle, Ticker, Chart."""

from predcharts.models.candle import Candle, PricePoint
from predcharts.models.chart import ChartResponse, MarketSummary, WireCandle
from predcharts.models.pool import Pool, TokenRef
from predcharts.models.proposal import (
    DEFAULT_CHAIN_ID,
    ProposalConfig,
    ProposalIdentity,
    parse_optional_int,
    parse_optional_str,
)
from predcharts.models.spot import HopSpec, SpotResult, TickerSpec

__all__ = [
    "DEFAULT_CHAIN_ID",
    "Candle",
    "ChartResponse",
    "HopSpec",
    "MarketSummary",
    "Pool",
    "PricePoint",
    "ProposalConfig",
    "ProposalIdentity",
    "SpotResult",
    "TickerSpec",
    "TokenRef",
    "WireCandle",
    "parse_optional_int",
    "parse_optional_str",
]
