"""Process wiring: one HTTP client, cache tiers, adapter, spot engine, chart service and warmer."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable

import httpx
import structlog

from predcharts.adapters import MarketDataAdapter, create_adapter
from predcharts.cache import CacheTiers, CacheWarmer, WarmList
from predcharts.config.settings import Settings
from predcharts.service.chart import ChartService
from predcharts.spot import GeckoTerminalClient, RateProvider, SpotPriceEngine, TokenBucket

log = structlog.get_logger(__name__)


@dataclass
class Runtime:
    settings: Settings
    client: httpx.AsyncClient
    tiers: CacheTiers
    warm_list: WarmList
    adapter: MarketDataAdapter
    rate_provider: RateProvider
    spot_engine: SpotPriceEngine
    service: ChartService
    warmer: CacheWarmer


def build_runtime(
    settings: Settings,
    client: httpx.AsyncClient,
    clock: Callable[[], float] = time.time,
) -> Runtime:
    """Construct every process-wide store and component once."""
    tiers = CacheTiers.from_settings(settings, clock)
    warm_list = WarmList(
        max_entries=settings.warmer_max_entries,
        retention_sec=settings.warmer_retention_days * 86400,
        clock=clock,
    )
    adapter = create_adapter(settings, client, tiers)
    rate_provider = RateProvider(client, cache=tiers.rate)
    gecko = GeckoTerminalClient(
        client,
        base_url=settings.gecko_api_base,
        bucket=TokenBucket.per_minute(settings.gecko_requests_per_minute),
    )
    spot_engine = SpotPriceEngine(gecko, rate_provider, cache=tiers.spot, default_limit=settings.spot_default_limit)
    service = ChartService(adapter, spot_engine, rate_provider, tiers, warm_list, clock=clock)
    warmer = CacheWarmer(warm_list, tiers.response, service.refresh, settings.warmer_interval_sec)
    return Runtime(
        settings=settings,
        client=client,
        tiers=tiers,
        warm_list=warm_list,
        adapter=adapter,
        rate_provider=rate_provider,
        spot_engine=spot_engine,
        service=service,
        warmer=warmer,
    )


@asynccontextmanager
async def open_runtime(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    start_warmer: bool = False,
) -> AsyncIterator[Runtime]:
    """Runtime with an owned HTTP client; the warmer runs for the lifetime of the block when asked."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_sec, transport=transport) as client:
        runtime = build_runtime(settings, client)
        if start_warmer and settings.warmer_enabled:
            runtime.warmer.start()
        try:
            yield runtime
        finally:
            await runtime.warmer.stop()
