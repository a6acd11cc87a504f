"""Composite spot pricing - evaluate a ticker into one price series (multi-hop, inversion, rate division)."""

from __future__ import annotations

import asyncio
from typing import Iterable, Sequence

import structlog

from predcharts.cache.store import TTLCache
from predcharts.errors import PredChartsError, UpstreamUnavailable
from predcharts.models import HopSpec, PricePoint, SpotResult, TickerSpec
from predcharts.spot.gecko import GeckoTerminalClient
from predcharts.spot.rate_provider import RateProvider
from predcharts.spot.ticker import chain_id_for, parse_ticker

log = structlog.get_logger(__name__)

DEFAULT_TICKER = "PNK/WETH+!sDAI/WETH-hour-500-xdai"


def invert_series(points: Iterable[PricePoint]) -> list[PricePoint]:
    """v -> 1/v. Zero prices have no inverse and are dropped."""
    return [PricePoint(time=p.time, value=1.0 / p.value) for p in points if p.value != 0]


def divide_series(points: Iterable[PricePoint], divisor: float) -> list[PricePoint]:
    return [PricePoint(time=p.time, value=p.value / divisor) for p in points]


def combine_hops(series: Sequence[Sequence[PricePoint]]) -> list[PricePoint]:
    """
    Forward-fill join: product of each hop's last known value at every timestamp in the union.

    A timestamp is emitted only once every hop has produced a value at or before it;
    after that, gaps in any single hop are carried forward. A point dropped by
    invert_series (zero price) is such a gap: the hop keeps its previous value.
    """
    if not series:
        return []
    if len(series) == 1:
        return list(series[0])
    lookups = [{p.time: p.value for p in s} for s in series]
    times = sorted(set().union(*lookups))
    last: list[float | None] = [None] * len(lookups)
    out: list[PricePoint] = []
    for t in times:
        for i, lookup in enumerate(lookups):
            if t in lookup:
                last[i] = lookup[t]
        if any(v is None for v in last):
            continue
        product = 1.0
        for v in last:
            product *= v
        out.append(PricePoint(time=t, value=product))
    return out


class SpotPriceEngine:
    """Turns ticker strings into SpotResults; error-free results are kept in the spot cache."""

    def __init__(
        self,
        gecko: GeckoTerminalClient,
        rates: RateProvider,
        cache: TTLCache | None = None,
        default_limit: int = 500,
    ) -> None:
        self.gecko = gecko
        self.rates = rates
        self.cache = cache
        self.default_limit = default_limit

    @staticmethod
    def _cache_key(ticker: str, limit: int | None) -> str:
        return f"{ticker}:{limit or ''}"

    def cached(self, ticker: str, limit: int | None = None) -> SpotResult | None:
        """Cached result without touching the provider."""
        if self.cache is None:
            return None
        return self.cache.get(self._cache_key(ticker, limit))

    async def fetch_spot_candles(self, ticker: str | None = None, limit: int | None = None) -> SpotResult:
        """Evaluate ticker (default composite if None). Failures come back in SpotResult.error."""
        ticker = ticker or DEFAULT_TICKER
        hit = self.cached(ticker, limit)
        if hit is not None:
            log.debug("spot_cache_hit", ticker=ticker)
            return hit
        try:
            spec = parse_ticker(ticker, self.default_limit)
            if limit:
                spec = spec.model_copy(update={"limit": limit})
            result = await self._evaluate(spec)
        except PredChartsError as e:
            log.warning("spot_failed", ticker=ticker, error=str(e))
            return SpotResult(error=str(e), transient=isinstance(e, UpstreamUnavailable))
        if self.cache is not None:
            self.cache.set(self._cache_key(ticker, limit), result)
        return result

    async def get_spot_price(self, ticker: str | None = None) -> float | None:
        """Latest spot value from a short series."""
        return (await self.fetch_spot_candles(ticker, 10)).price

    async def _hop_series(self, hop: HopSpec, spec: TickerSpec) -> list[PricePoint]:
        if hop.pool_address:
            address = hop.pool_address
        else:
            pool = await self.gecko.search_pool(spec.network, hop.base, hop.quote)
            address = pool.address
        points = await self.gecko.fetch_ohlcv(address, spec.network, spec.interval, spec.limit)
        if hop.invert:
            points = invert_series(points)
        log.debug("spot_hop_fetched", hop=hop.label, inverted=hop.invert, points=len(points))
        return points

    async def _evaluate(self, spec: TickerSpec) -> SpotResult:
        if spec.multi_hop:
            # Any hop failure propagates: a partial product would be wrong.
            series = await asyncio.gather(*(self._hop_series(h, spec) for h in spec.hops))
            points = combine_hops(series)
            if spec.invert:
                points = invert_series(points)
            label = " -> ".join(h.label for h in spec.hops)
            log.info("spot_multi_hop", hops=len(spec.hops), points=len(points))
            return SpotResult(
                candles=tuple(points),
                price=points[-1].value if points else None,
                rate=None,
                pool=label,
            )

        hop = spec.hops[0]
        points = await self._hop_series(hop, spec)
        rate = 1.0
        if spec.rate_provider:
            chain_id = chain_id_for(spec.network)
            if chain_id is not None:
                rate = await self.rates.get_rate(spec.rate_provider, chain_id)
            points = divide_series(points, rate)
        if spec.invert:
            points = invert_series(points)
        log.info("spot_single", pool=hop.label, points=len(points), rate=rate)
        return SpotResult(
            candles=tuple(points),
            price=points[-1].value if points else None,
            rate=rate,
            pool=hop.pool_address or hop.label,
        )
