"""Chart service - one merged chart response per proposal (pools, candles, spot, rate), cached and warmed."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

import structlog
from pydantic import BaseModel, ConfigDict

from predcharts.adapters.base import MarketDataAdapter
from predcharts.adapters.normalize import parse_pool_name
from predcharts.cache.store import CacheTiers
from predcharts.cache.warmer import WarmList
from predcharts.candles.fill import ONE_HOUR, clip_range, forward_fill
from predcharts.errors import UpstreamUnavailable
from predcharts.models import Candle, Pool, ProposalIdentity, SpotResult
from predcharts.models.chart import (
    BaseToken,
    ChartCandles,
    ChartResponse,
    CompanyTokens,
    CurrencyToken,
    MarketSummary,
    OutcomePrice,
    PoolVolume,
    SpotPrice,
    Timeline,
    Volumes,
    WireCandle,
)
from predcharts.models.proposal import parse_optional_int, parse_precision, parse_rate_provider
from predcharts.spot.composite import SpotPriceEngine
from predcharts.spot.rate_provider import RateProvider

log = structlog.get_logger(__name__)

TIMELINE_LOOKBACK_SEC = 2 * 24 * 3600
TIMELINE_LOOKAHEAD_SEC = 3 * 24 * 3600


class ChartQuery(BaseModel):
    """Parameters of one chart request. max_timestamp None means "now" at compute time."""

    model_config = ConfigDict(frozen=True)

    proposal_id: str
    min_timestamp: int = 0
    max_timestamp: int | None = None
    include_spot: bool = True

    @property
    def cache_key(self) -> str:
        upper = self.max_timestamp if self.max_timestamp is not None else "now"
        return f"chart:{self.proposal_id.lower()}:{self.min_timestamp}:{upper}:{int(self.include_spot)}"


@dataclass(frozen=True)
class MarketContext:
    """Proposal identity plus the org-level fallbacks applied."""

    identity: ProposalIdentity
    ticker: str | None
    chart_start: int | None
    price_precision: int | None
    rate_provider: str | None
    stable_symbol: str | None


def select_conditional(pools: list[Pool], side: str) -> Pool | None:
    """First CONDITIONAL pool for YES or NO."""
    for pool in pools:
        if pool.outcome_side == side and pool.kind == "CONDITIONAL":
            return pool
    return None


def token_symbols(pools: list[Pool], yes_pool: Pool | None) -> tuple[str, str]:
    """(company, currency) symbols: pool data, then the YES pool name, then placeholders."""
    company = pools[0].company_symbol if pools else None
    currency = pools[0].currency_symbol if pools else None
    if not company and yes_pool is not None:
        parsed = parse_pool_name(yes_pool.name)
        if parsed is not None and parsed[0] == "YES":
            company, currency = parsed[1], parsed[2]
    return company or "TOKEN", currency or "CURRENCY"


def pool_volume(pool: Pool | None) -> PoolVolume | None:
    if pool is None:
        return None
    return PoolVolume(
        pool_id=pool.id,
        volume=pool.volume_base or "0",
        volume_usd=pool.volume_quote or "0",
    )


def to_wire(candles: list[Candle]) -> tuple[WireCandle, ...]:
    return tuple(WireCandle(periodStartUnix=str(c.period_start), close=c.close) for c in candles)


def spot_to_wire(result: SpotResult | None, lo: int, hi: int) -> tuple[WireCandle, ...]:
    if result is None or not result.ok:
        return ()
    return tuple(
        WireCandle(periodStartUnix=str(p.time), close=str(p.value))
        for p in result.candles
        if lo <= p.time <= hi
    )


class ChartService:
    """Orchestrates adapter, spot engine, rate provider, normalizer and caches for one request."""

    def __init__(
        self,
        adapter: MarketDataAdapter,
        spot_engine: SpotPriceEngine,
        rate_provider: RateProvider,
        tiers: CacheTiers,
        warm_list: WarmList | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.adapter = adapter
        self.spot_engine = spot_engine
        self.rate_provider = rate_provider
        self.tiers = tiers
        self.warm_list = warm_list
        self._clock = clock

    # --- chart ---

    async def get_chart(
        self,
        query: ChartQuery,
        *,
        allow_spot_fetch: bool = True,
        register: bool = True,
    ) -> ChartResponse:
        """
        Full chart for a proposal: YES/NO candles gap-filled to min(max_timestamp, now),
        spot series clipped to the window, prices scaled by the currency rate.

        Served from the response cache when fresh. A computed response is cached and
        registered for warming unless the spot provider was down or rate limited. A
        permanent spot error (bad ticker, no matching pool) is cached as a null spot.
        """
        key = query.cache_key
        cached = self.tiers.response.get(key)
        if cached is not None:
            log.debug("response_cache_hit", key=key)
            return cached

        now = int(self._clock())
        lo = query.min_timestamp
        hi = query.max_timestamp if query.max_timestamp is not None else now
        # Candle starts are hour-aligned: same rows as hi, stable candles-tier key.
        fetch_hi = hi - hi % ONE_HOUR

        ctx = await self._market_context(query.proposal_id)
        identity = ctx.identity
        chain_id = identity.chain_id
        pools = await self.adapter.list_pools(identity.trading_address, chain_id)
        yes_pool = select_conditional(pools, "YES")
        no_pool = select_conditional(pools, "NO")

        ticker = ctx.ticker if query.include_spot else None
        rate, yes_raw, no_raw, spot = await asyncio.gather(
            self.rate_provider.get_rate(ctx.rate_provider, chain_id),
            self._side_candles(yes_pool, lo, fetch_hi, chain_id),
            self._side_candles(no_pool, lo, fetch_hi, chain_id),
            self._spot(ticker, allow_spot_fetch),
        )

        yes_candles = clip_range(forward_fill(yes_raw, hi, now=now), lo, hi)
        no_candles = clip_range(forward_fill(no_raw, hi, now=now), lo, hi)
        spot_failed = spot is not None and not spot.ok
        spot_transient = spot_failed and spot.transient

        market = self._market_summary(ctx, pools, yes_pool, no_pool, rate, spot, now)
        response = ChartResponse(
            market=market,
            candles=ChartCandles(
                yes=to_wire(yes_candles),
                no=to_wire(no_candles),
                spot=spot_to_wire(spot, lo, hi),
            ),
        )
        log.info(
            "chart_built",
            proposal=identity.trading_address,
            yes=len(yes_candles),
            no=len(no_candles),
            spot=len(response.candles.spot),
            spot_failed=spot_failed,
        )

        if spot_transient:
            return response
        self.tiers.response.set(key, response)
        if register and self.warm_list is not None:
            self.warm_list.register(key, query)
        return response

    async def refresh(self, query: ChartQuery) -> ChartResponse:
        """Warmer entry point: recompute without fetching spot from the external provider."""
        return await self.get_chart(query, allow_spot_fetch=False, register=False)

    # --- market prices (no candles) ---

    async def get_prices(self, proposal_id: str) -> MarketSummary:
        """Current prices, tokens, timeline and volumes for a proposal."""
        now = int(self._clock())
        ctx = await self._market_context(proposal_id)
        chain_id = ctx.identity.chain_id
        pools = await self.adapter.list_pools(ctx.identity.trading_address, chain_id)
        yes_pool = select_conditional(pools, "YES")
        no_pool = select_conditional(pools, "NO")
        rate, spot = await asyncio.gather(
            self.rate_provider.get_rate(ctx.rate_provider, chain_id),
            self._spot(ctx.ticker, True, limit=10),
        )
        return self._market_summary(ctx, pools, yes_pool, no_pool, rate, spot, now)

    # --- spot candles ---

    async def get_spot_candles(
        self, ticker: str, min_timestamp: int = 0, max_timestamp: int | None = None
    ) -> tuple[list[WireCandle], str | None]:
        """Spot series for a raw ticker clipped to the window, plus the error if evaluation failed."""
        hi = max_timestamp if max_timestamp is not None else int(self._clock())
        result = await self.spot_engine.fetch_spot_candles(ticker)
        return list(spot_to_wire(result, min_timestamp, hi)), result.error

    # --- internals ---

    async def _market_context(self, proposal_id: str) -> MarketContext:
        identity = await self.adapter.resolve_proposal(proposal_id)
        org = identity.organization_id

        precision = identity.price_precision
        if precision is None:
            precision = parse_precision(await self._org_value(org, "price_precision"))
        rate_provider = identity.rate_provider_address
        if rate_provider is None:
            rate_provider = parse_rate_provider(await self._org_value(org, "currency_stable_rate"))
        stable_symbol = identity.stable_symbol
        if stable_symbol is None:
            stable_symbol = await self._org_value(org, "currency_stable_symbol")
        ticker = identity.ticker_spec
        if ticker is None:
            ticker = await self._org_value(org, "coingecko_ticker")
        chart_start = identity.start_timestamp
        if chart_start is None:
            chart_start = parse_optional_int(await self._org_value(org, "chart_start_range"))

        return MarketContext(
            identity=identity,
            ticker=ticker,
            chart_start=chart_start,
            price_precision=precision,
            rate_provider=rate_provider,
            stable_symbol=stable_symbol,
        )

    async def _org_value(self, org_id: str | None, key: str) -> str | None:
        if not org_id:
            return None
        try:
            return await self.adapter.lookup_org_metadata(org_id, key)
        except UpstreamUnavailable as e:
            log.warning("org_metadata_failed", org=org_id, key=key, error=str(e))
            return None

    async def _side_candles(self, pool: Pool | None, lo: int, hi: int, chain_id: int) -> list[Candle]:
        if pool is None:
            return []
        try:
            return await self.adapter.fetch_candle_series(pool.id, lo, hi, chain_id)
        except UpstreamUnavailable as e:
            log.warning("candles_failed", pool=pool.id, error=str(e))
            return []

    async def _spot(
        self, ticker: str | None, allow_fetch: bool, limit: int | None = None
    ) -> SpotResult | None:
        if not ticker:
            return None
        if not allow_fetch:
            return self.spot_engine.cached(ticker, limit)
        return await self.spot_engine.fetch_spot_candles(ticker, limit)

    def _market_summary(
        self,
        ctx: MarketContext,
        pools: list[Pool],
        yes_pool: Pool | None,
        no_pool: Pool | None,
        rate: float,
        spot: SpotResult | None,
        now: int,
    ) -> MarketSummary:
        identity = ctx.identity
        company, currency = token_symbols(pools, yes_pool)
        return MarketSummary(
            event_id=identity.original_proposal_id or identity.proposal_id,
            conditional_yes=OutcomePrice(
                price_usd=yes_pool.price_float * rate if yes_pool else 0.0,
                pool_id=yes_pool.id if yes_pool else "",
            ),
            conditional_no=OutcomePrice(
                price_usd=no_pool.price_float * rate if no_pool else 0.0,
                pool_id=no_pool.id if no_pool else "",
            ),
            spot=SpotPrice(
                price_usd=spot.price if spot is not None and spot.ok else None,
                pool_ticker=ctx.ticker,
            ),
            company_tokens=CompanyTokens(
                base=BaseToken(tokenSymbol=company),
                currency=CurrencyToken(tokenSymbol=currency, stableSymbol=ctx.stable_symbol),
            ),
            timeline=Timeline(
                start=ctx.chart_start or now - TIMELINE_LOOKBACK_SEC,
                end=identity.close_timestamp or now + TIMELINE_LOOKAHEAD_SEC,
                chain_id=identity.chain_id,
                chart_start_range=ctx.chart_start,
                close_timestamp=identity.close_timestamp,
                price_precision=ctx.price_precision,
                currency_rate=rate if ctx.rate_provider else None,
            ),
            volume=Volumes(conditional_yes=pool_volume(yes_pool), conditional_no=pool_volume(no_pool)),
        )
