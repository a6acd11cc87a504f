"""Composite spot pricing: ticker grammar, OHLCV provider, rate provider, hop combination."""

from predcharts.spot.composite import DEFAULT_TICKER, SpotPriceEngine, combine_hops, invert_series
from predcharts.spot.gecko import GeckoTerminalClient
from predcharts.spot.rate_limit import TokenBucket
from predcharts.spot.rate_provider import RateProvider
from predcharts.spot.ticker import parse_ticker

__all__ = [
    "DEFAULT_TICKER",
    "GeckoTerminalClient",
    "RateProvider",
    "SpotPriceEngine",
    "TokenBucket",
    "combine_hops",
    "invert_series",
    "parse_ticker",
]
